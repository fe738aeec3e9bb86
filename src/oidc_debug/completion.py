# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/oidc_debug

"""
One-shot completion signal for a flow run.
"""

import anyio

from oidc_debug.exceptions import CompletionError
from oidc_debug.models import FlowOutcome
from oidc_debug.utils.logger import logger


class CompletionSignal:
    """
    A single-slot promise resolved with the flow's terminal outcome.

    The first ``resolve`` wins. Later attempts are refused and logged, never raised,
    so a late callback or listener failure cannot crash the run. The outcome can be
    awaited once.
    """

    def __init__(self) -> None:
        self._outcome: FlowOutcome | None = None
        self._event: anyio.Event | None = None
        self._consumed = False

    def _get_event(self) -> anyio.Event:
        # anyio primitives need a running event loop, so create on first use
        if self._event is None:
            self._event = anyio.Event()
        return self._event

    @property
    def resolved(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> FlowOutcome | None:
        return self._outcome

    def resolve(self, outcome: FlowOutcome) -> bool:
        """
        Resolves the signal.

        Returns:
            bool: True if this call resolved it, False if it was already resolved.
        """
        if self._outcome is not None:
            logger.warning(
                f"Flow already {self._outcome.status}; ignoring late {outcome.status} outcome"
                + (f" ({outcome.error})" if outcome.error else "")
            )
            return False

        self._outcome = outcome
        self._get_event().set()
        logger.debug(f"Flow {outcome.status}")
        return True

    async def wait(self) -> FlowOutcome:
        """
        Waits for the outcome.

        Raises:
            CompletionError: If the outcome was already consumed.
        """
        if self._consumed:
            raise CompletionError("Completion signal has already been consumed")
        self._consumed = True
        await self._get_event().wait()
        if self._outcome is None:
            # Unreachable: resolve() stores the outcome before setting the event
            raise CompletionError("Completion signal fired without an outcome")  # pragma: no cover
        return self._outcome

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
Opens the login URL in the operator's browser.
"""

import webbrowser
from collections.abc import Awaitable, Callable

import anyio

from oidc_debug.exceptions import BrowserLaunchError
from oidc_debug.utils.logger import logger

BrowserLauncher = Callable[[str], Awaitable[None]]


async def open_in_browser(url: str) -> None:
    """
    Opens ``url`` in the default browser without waiting for the page.

    Raises:
        BrowserLaunchError: If no browser could be started.
    """
    logger.info(f"Opening {url} in the default browser")
    try:
        opened = await anyio.to_thread.run_sync(webbrowser.open, url)
    except webbrowser.Error as e:
        raise BrowserLaunchError(f"Could not open browser for {url}: {e}") from e

    if not opened:
        raise BrowserLaunchError(f"No browser available to open {url}")

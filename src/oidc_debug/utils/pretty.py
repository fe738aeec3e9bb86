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
Indented text rendering of JSON and YAML for display.
"""

import json
from typing import Any

import yaml


def _prefix_lines(text: str, prefix: str) -> str:
    return "\n".join(prefix + line for line in text.splitlines())


def indent_json(data: bytes | str | Any, prefix: str = "  ") -> str:
    """
    Renders JSON as indented text with every line prefixed.

    Args:
        data: Raw JSON (bytes or str) or an already decoded JSON value.
        prefix: Prepended to every output line, the first one included.

    Returns:
        The indented text.

    Raises:
        ValueError: If raw input is not valid JSON (json.JSONDecodeError or UnicodeDecodeError).
    """
    value = json.loads(data) if isinstance(data, (bytes, bytearray, str)) else data
    return _prefix_lines(json.dumps(value, indent=2, ensure_ascii=False), prefix)


def indent_yaml(data: Any, prefix: str = "  | ") -> str:
    """Renders a value as block-style YAML with every line prefixed."""
    text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return _prefix_lines(text.strip(), prefix)

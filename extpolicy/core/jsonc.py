"""
JSON-with-comments handling for VS Code settings files.

settings.json allows // and /* */ comments and trailing commas. This module
removes them with a plain textual pre-pass before handing the text to json.

WARNING: the pre-pass does not know about string literals. A value such as
"http.proxy": "http://proxy:8080" loses everything after "//", which usually
makes the document unparseable. Such a file is treated as corrupt (see
UserSettingsStore, which backs the original text up before rewriting it).
"""

import json
import re
from typing import Optional

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"//[^\n]*")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def strip_comments(text: str) -> str:
    """Remove /* block */ comments, then // line comments."""
    text = _BLOCK_COMMENT.sub("", text)
    return _LINE_COMMENT.sub("", text)


def strip_trailing_commas(text: str) -> str:
    """Remove a comma directly before a closing brace or bracket."""
    return _TRAILING_COMMA.sub(r"\1", text)


def parse_settings(text: Optional[str]) -> tuple[dict, Optional[str]]:
    """
    Parse settings text into an ordered dict.

    Never raises. Empty, unparseable, or non-object content yields an empty
    dict together with a warning message.

    Returns:
        Tuple of (document, warning). warning is None on success.
    """
    if not text or not text.strip():
        return {}, "settings document is empty"

    cleaned = strip_trailing_commas(strip_comments(text))
    if not cleaned.strip():
        return {}, "settings document contains only comments"

    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError) as e:
        return {}, f"settings document is not valid JSON: {e}"

    if not isinstance(data, dict):
        return {}, f"settings document must be an object, got {type(data).__name__}"

    return data, None

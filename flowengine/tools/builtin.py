"""
Built-in tools, served under the ``builtin`` server.

Small, dependency-free helpers that the demo flow and local runs can
offer to a model.
"""

from typing import Any, Dict
from datetime import datetime, timedelta, timezone
import re

from flowengine.tools.registry import register_tool


BUILTIN_SERVER = "builtin"


@register_tool(BUILTIN_SERVER, description="Current date and time in ISO 8601 format")
def current_time(utc_offset_hours: int = 0) -> Dict[str, Any]:
    """
    Return the current time.

    Args:
        utc_offset_hours: Offset from UTC for the returned time
    """
    now = datetime.now(timezone(timedelta(hours=utc_offset_hours)))
    return {"iso": now.isoformat(), "utc_offset_hours": utc_offset_hours}


@register_tool(BUILTIN_SERVER, description="Count words, lines and characters in a text")
def word_count(text: str) -> Dict[str, int]:
    words = re.findall(r"\S+", text)
    return {
        "words": len(words),
        "lines": len(text.splitlines()) if text else 0,
        "characters": len(text),
    }


@register_tool(BUILTIN_SERVER, description="Add two numbers")
def add(a: float, b: float) -> Dict[str, float]:
    return {"result": a + b}

from __future__ import annotations

import re

_MARKUP_CHARS = re.compile(r"[<>]")
_SCHEME_PREFIXES = re.compile(r"(?:javascript|vbscript|data)\s*:", re.IGNORECASE)
_EVENT_HANDLERS = re.compile(
    r"\bon(?:abort|blur|change|click|contextmenu|copy|cut|dblclick|drag\w*|drop|error|focus\w*|input|"
    r"invalid|key\w*|load\w*|mouse\w*|paste|pointer\w*|reset|resize|scroll|select|submit|toggle|"
    r"touch\w*|unload|wheel|animation\w*|transition\w*|begin|end)\s*=",
    re.IGNORECASE,
)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_INLINE_WHITESPACE = re.compile(r"[ \t]+")


def sanitize_text(value: str | None) -> str:
    """Limpia texto libre antes de persistirlo (markup, esquemas, handlers)."""
    if not value:
        return ""
    cleaned = _CONTROL_CHARS.sub("", str(value))
    cleaned = _MARKUP_CHARS.sub("", cleaned)
    # repetir hasta estabilizar: "javajavascript:script:" no debe sobrevivir
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _SCHEME_PREFIXES.sub("", cleaned)
        cleaned = _EVENT_HANDLERS.sub("", cleaned)
    cleaned = _INLINE_WHITESPACE.sub(" ", cleaned)
    return cleaned.strip()


def truncate(value: str, max_length: int) -> str:
    if len(value) <= max_length:
        return value
    return value[:max_length].rstrip()

"""Text helpers for turning transport-encoded mail bodies into plain text."""

import base64
import binascii
import re

from .logging_config import get_logger

logger = get_logger(__name__)

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
# A tag starts with a letter, "/" or "!", so decoded comparisons like "< 5%" stay
_TAG = re.compile(r"</?[A-Za-z!][^>]*>")
_BLANK_LINES = re.compile(r"\n\s*\n")
_SPACES = re.compile(r"  +")

HTML_ENTITIES = {
    "&nbsp;": " ",
    "&lt;": "<",
    "&gt;": ">",
    "&amp;": "&",
    "&quot;": '"',
    "&#39;": "'",
}
_ENTITY = re.compile("|".join(re.escape(entity) for entity in HTML_ENTITIES))


def decode_base64url(data: str) -> str:
    """Decode a URL-safe base64 payload as UTF-8.

    Gmail omits padding, so it is restored before decoding. Undecodable input
    yields an empty string.
    """
    if not data:
        return ""

    normalized = data.replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)

    try:
        return base64.b64decode(normalized).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        logger.error(f"Base64 decode failed: {e}")
        return ""


def _flatten_markup(text: str) -> str:
    # Entities can decode into new tags ("&lt;b&gt;") and tag removal can join
    # new entities, so repeat until nothing changes. Every change shortens text.
    while True:
        reduced = _ENTITY.sub(lambda m: HTML_ENTITIES[m.group(0)], _TAG.sub("", text))
        if reduced == text:
            return text
        text = reduced


def strip_html(html: str) -> str:
    """Reduce an HTML (or plain) body to readable plain text.

    Script and style blocks go first, then tags and the common entities, then
    blank-line runs collapse to one blank line and space runs to one space.
    Running it over its own output changes nothing.
    """
    text = _SCRIPT_BLOCK.sub("", html)
    text = _STYLE_BLOCK.sub("", text)
    text = _flatten_markup(text)

    text = _BLANK_LINES.sub("\n\n", text)
    text = _SPACES.sub(" ", text)

    return text.strip()

"""Rich-text sanitization for message bodies.

Bodies are stored as an allow-listed HTML subset. Input without any markup is
treated as plain text and converted into escaped paragraphs. The plain-text
projection strips every tag and collapses whitespace; it feeds previews,
search and length validation.
"""

from __future__ import annotations

import html
import re

import bleach
from bleach.html5lib_shim import Filter

ALLOWED_TAGS = frozenset(
    {
        "p",
        "br",
        "strong",
        "em",
        "u",
        "ul",
        "ol",
        "li",
        "blockquote",
        "a",
        "img",
        "figure",
        "figcaption",
    }
)

ALLOWED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "target", "rel"}),
    "img": frozenset({"src", "alt", "width", "height", "loading"}),
    "figure": frozenset({"class"}),
    "figcaption": frozenset({"class"}),
}

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})

LINK_TARGET = "_blank"
LINK_REL = "noopener noreferrer nofollow"

_HAS_HTML_TAG = re.compile(r"</?[a-z][^>]*>", re.IGNORECASE)
_NON_TEXT_BLOCKS = re.compile(
    r"<(script|style|textarea|noscript)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_PARAGRAPH_BREAK = re.compile(r"\n{2,}")
_WHITESPACE = re.compile(r"\s+")
_IMG_SRC = re.compile(r"<img[^>]+src=\"([^\"]+)\"", re.IGNORECASE)
_EXTERNAL_LINK = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)

SUSPICIOUS_KEYWORDS = (
    "viagra",
    "casino",
    "crypto pump",
    "loan guaranteed",
    "click here now",
    "telegram @",
)
SUSPICIOUS_LINK_COUNT = 4


def _allow_attribute(tag: str, name: str, value: str) -> bool:
    if name not in ALLOWED_ATTRIBUTES.get(tag, frozenset()):
        return False
    # Images may only load over http(s); bleach checks link protocols itself.
    if tag == "img" and name == "src":
        return value.lower().startswith(("http://", "https://"))
    return True


class _ForceLinkAttributes(Filter):
    """Open existing anchors in a new tab without a referrer; bare URLs stay text."""

    def __iter__(self):
        for token in Filter.__iter__(self):
            if token["type"] in ("StartTag", "EmptyTag") and token["name"] == "a":
                attrs = dict(token.get("data") or {})
                attrs[(None, "target")] = LINK_TARGET
                attrs[(None, "rel")] = LINK_REL
                token["data"] = attrs
            yield token


_CLEANER = bleach.Cleaner(
    tags=ALLOWED_TAGS,
    attributes=_allow_attribute,
    protocols=ALLOWED_PROTOCOLS,
    strip=True,
    strip_comments=True,
    filters=[_ForceLinkAttributes],
)


def _strip_non_text(value: str) -> str:
    return _NON_TEXT_BLOCKS.sub("", value)


def _paragraphs_from_text(value: str) -> str:
    paragraphs = [part.strip() for part in _PARAGRAPH_BREAK.split(value)]
    return "".join(
        f"<p>{html.escape(part).replace(chr(10), '<br />')}</p>"
        for part in paragraphs
        if part
    )


def to_plain_text(value: str | None) -> str:
    """Return the tag-free, whitespace-collapsed text of ``value``."""
    if not value:
        return ""
    stripped = bleach.clean(_strip_non_text(value), tags=set(), attributes={}, strip=True)
    return _WHITESPACE.sub(" ", html.unescape(stripped)).strip()


def sanitize_for_storage(value: str | None) -> str:
    """Return allow-listed HTML for ``value``, or ``""`` when it has no text."""
    if not value:
        return ""
    trimmed = value.strip()
    if not trimmed:
        return ""

    if not _HAS_HTML_TAG.search(trimmed):
        sanitized = _paragraphs_from_text(trimmed)
    else:
        sanitized = _CLEANER.clean(_strip_non_text(trimmed))

    if not to_plain_text(sanitized) and not discover_image_urls(sanitized):
        return ""
    return sanitized


def validate_plain_text_length(value: str | None, *, max_length: int, min_length: int = 1) -> bool:
    """Return True when the plain-text length of ``value`` is within bounds."""
    length = len(to_plain_text(value))
    return min_length <= length <= max_length


def discover_image_urls(value: str | None) -> list[str]:
    """Return the distinct ``<img src>`` URLs in ``value`` in document order."""
    if not value:
        return []
    return list(dict.fromkeys(html.unescape(url) for url in _IMG_SRC.findall(value)))


def count_external_links(value: str) -> int:
    """Return how many http(s) URLs appear in ``value``."""
    return len(_EXTERNAL_LINK.findall(value))


def is_suspicious_content(value: str) -> bool:
    """Return True for link-stuffed or denylisted content."""
    plain = to_plain_text(value).lower()
    if any(keyword in plain for keyword in SUSPICIOUS_KEYWORDS):
        return True
    return count_external_links(value) >= SUSPICIOUS_LINK_COUNT

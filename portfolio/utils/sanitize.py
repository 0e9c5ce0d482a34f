import re

import bleach
from bleach.css_sanitizer import CSSSanitizer
from bleach.html5lib_shim import Filter


ALLOWED_TAGS = [
    # layout / semantic wrappers
    "article",
    "aside",
    "div",
    "footer",
    "header",
    "section",
    "span",
    # headings and blocks
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "p",
    "blockquote",
    "pre",
    "hr",
    "br",
    "figure",
    "figcaption",
    # lists
    "ul",
    "ol",
    "li",
    "dl",
    "dt",
    "dd",
    # inline
    "a",
    "abbr",
    "b",
    "cite",
    "code",
    "del",
    "em",
    "i",
    "ins",
    "kbd",
    "mark",
    "s",
    "small",
    "strong",
    "sub",
    "sup",
    "u",
    # media
    "img",
    # tables
    "table",
    "caption",
    "thead",
    "tbody",
    "tfoot",
    "tr",
    "th",
    "td",
]

ALLOWED_ATTRIBUTES = {
    "*": ["id", "class"],
    "a": ["href", "name", "target", "rel", "title"],
    "img": ["src", "alt", "title", "loading", "decoding", "width", "height"],
    "th": ["style", "colspan", "rowspan"],
    "td": ["style", "colspan", "rowspan"],
    "span": ["style"],
    "div": ["style"],
}

ALLOWED_CSS_PROPERTIES = [
    "text-align",
    "color",
    "background-color",
    "font-weight",
    "font-style",
    "text-decoration",
]

ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

# raw-text elements, removed together with their content before cleaning
DROPPED_ELEMENTS = ("script", "style", "textarea", "iframe", "noscript", "noembed", "noframes", "xmp")

_dropped = "|".join(DROPPED_ELEMENTS)
_CLOSED_ELEMENT_RE = re.compile(rf"<({_dropped})\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_UNCLOSED_ELEMENT_RE = re.compile(rf"<({_dropped})\b[^>]*>.*\Z", re.IGNORECASE | re.DOTALL)


def _attr(name: str) -> tuple:
    return (None, name)


class ContentDefaultsFilter(Filter):
    """Post-sanitize pass over links and images.

    Links open in a new tab without leaking the referrer, images get lazy loading
    and async decoding unless the author set them, and protocol-relative URLs are
    dropped.
    """

    def __iter__(self):
        for token in Filter.__iter__(self):
            if token["type"] in ("StartTag", "EmptyTag") and token["name"] in ("a", "img"):
                attrs = dict(token.get("data") or {})
                for url_attr in ("href", "src"):
                    value = attrs.get(_attr(url_attr))
                    if value and value.strip().startswith("//"):
                        del attrs[_attr(url_attr)]

                if token["name"] == "a":
                    attrs[_attr("rel")] = "noreferrer noopener"
                    attrs[_attr("target")] = "_blank"
                else:
                    attrs.setdefault(_attr("loading"), "lazy")
                    attrs.setdefault(_attr("decoding"), "async")
                token["data"] = attrs
            yield token


_cleaner = bleach.Cleaner(
    tags=ALLOWED_TAGS,
    attributes=ALLOWED_ATTRIBUTES,
    protocols=ALLOWED_PROTOCOLS,
    css_sanitizer=CSSSanitizer(allowed_css_properties=ALLOWED_CSS_PROPERTIES),
    strip=True,
    filters=[ContentDefaultsFilter],
)


def sanitize_html(raw_html: str) -> str:
    """Sanitize HTML with a strict allowlist for safe rendering."""
    if not raw_html:
        return ""
    raw_html = _CLOSED_ELEMENT_RE.sub("", raw_html)
    raw_html = _UNCLOSED_ELEMENT_RE.sub("", raw_html)
    return _cleaner.clean(raw_html)

import markdown
from markupsafe import Markup

from portfolio.utils.sanitize import sanitize_html

MD_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]


def render_markdown(text: str) -> str:
    """Render author markdown to sanitized HTML.

    Raw HTML in the source is allowed through the markdown pass and then cut back
    to the sanitizer allowlist, so stored content can never inject scripts.
    """
    raw = markdown.markdown(text or "", extensions=MD_EXTENSIONS, output_format="html")
    return sanitize_html(raw)


def markdown_html(text: str) -> Markup:
    return Markup(render_markdown(text))

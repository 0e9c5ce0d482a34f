from datetime import datetime
from pathlib import Path

from fastapi.templating import Jinja2Templates

from portfolio import config

templates_dir = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))


def date_filter(value: str) -> str:
    """Format an ISO date/timestamp as 'Jun 2024'; unparseable values pass through."""
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value[:10]).strftime("%b %Y")
    except ValueError:
        return value


templates.env.filters["display_date"] = date_filter
templates.env.globals["site_name"] = config.get_site_name
templates.env.globals["site_gated"] = config.is_site_gated


def page_meta(path: str, title: str, description: str = "", image: str = "") -> dict:
    """Canonical URL and social preview fields for a public page."""
    base_url = config.get_site_url()
    image = image or "/public/avatar.svg"
    return {
        "title": title,
        "description": description,
        "canonical": f"{base_url}{path}" if base_url else path,
        "og_image": f"{base_url}{image}" if base_url and image.startswith("/") else image,
    }

"""
Share-preview rendering for a single article.

Crawlers (WhatsApp, Facebook, Twitter, Telegram...) don't run the site's
JavaScript, so the article route answers them with a fixed HTML page that
carries the Open Graph / Twitter meta tags for the requested article.
"""

from __future__ import annotations
import re
from pathlib import Path

EXCERPT_LENGTH = 150

TEMPLATE_PATH = Path(__file__).parent / "templates" / "artigo.html"

_BOT_RE = re.compile(
    r"(facebookexternalhit|WhatsApp|Twitterbot|TelegramBot|Slackbot|LinkedInBot|"
    r"Discordbot|Google-Structured-Data|pinterest|bingbot|googlebot)",
    re.IGNORECASE,
)


def is_bot(user_agent: str) -> bool:
    return bool(_BOT_RE.search(user_agent or ""))


def strip_html(html: str) -> str:
    text = re.sub(r'<[^>]+>', ' ', html)
    # Decode common entities
    for ent, char in [("&lt;", "<"), ("&gt;", ">"), ("&quot;", '"'),
                      ("&#39;", "'"), ("&nbsp;", " "), ("&amp;", "&")]:
        text = text.replace(ent, char)
    return re.sub(r'\s+', ' ', text).strip()


def summarize(html: str, max_length: int = EXCERPT_LENGTH) -> str:
    """Plain-text excerpt: tags stripped, whitespace collapsed, cut at max_length + '...'."""
    text = strip_html(html or "")
    return text[:max_length] + "..." if len(text) > max_length else text


def escape_attr(value) -> str:
    return (str(value).replace("&", "&amp;")
                      .replace('"', "&quot;")
                      .replace("<", "&lt;")
                      .replace(">", "&gt;"))


class ShareTemplate:
    """HTML page with {{TOKEN}} placeholders; every substituted value is escaped."""

    TOKENS = ("TITLE", "DESCRIPTION", "IMAGE_URL", "SHARE_URL", "CATEGORY", "ARTICLE_ID")

    def __init__(self, source: str):
        self.source = source

    @classmethod
    def load(cls, path: Path = TEMPLATE_PATH) -> "ShareTemplate":
        return cls(path.read_text(encoding="utf-8"))

    def render(self, **values) -> str:
        missing = [t for t in self.TOKENS if t not in values]
        if missing:
            raise KeyError(f"Missing template values: {', '.join(missing)}")
        return re.sub(
            r"\{\{([A-Z_]+)\}\}",
            lambda m: escape_attr(values[m.group(1)]) if m.group(1) in values else m.group(0),
            self.source,
        )


def share_values(article: dict, config) -> dict:
    """Map an article row to the template's placeholder values, applying fallbacks."""
    aid = article["id"]
    return {
        "TITLE": article.get("title") or config.site_name,
        "DESCRIPTION": summarize(article.get("content") or ""),
        "IMAGE_URL": article.get("image_url") or config.fallback_image,
        "SHARE_URL": f"{config.site_url}/noticia/{aid}",
        "CATEGORY": article.get("category") or config.fallback_category,
        "ARTICLE_ID": aid,
    }


def render_share_page(article: dict, config, template: ShareTemplate | None = None) -> str:
    template = template or ShareTemplate.load()
    return template.render(**share_values(article, config))

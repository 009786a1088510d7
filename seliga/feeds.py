"""
Feed importer: pulls RSS items, rewrites them, stores them as articles.

For each configured feed, fetches and parses the items, skips links that
were already imported, asks the LLM for an original rewrite, and inserts
the result into the articles table with a slug, a category guessed from
the feed URL and an image credit for the source domain.
"""

from __future__ import annotations
import logging
import re
import time
import unicodedata
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

import feedparser
import httpx
from dateutil import parser as dateparser

from seliga.render import strip_html
from seliga.rewrite import RewriteError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; SeligaManaux/1.0; +https://seligamanaux.com.br)"


# ── Feed Parsing ──────────────────────────────────────────────────────

def fetch_feed(url: str, timeout: int = 30) -> list[dict]:
    """Fetch and parse an RSS/Atom feed. Raises httpx.HTTPError on failure."""
    resp = httpx.get(url, timeout=timeout, follow_redirects=True, headers={
        "User-Agent": USER_AGENT
    })
    resp.raise_for_status()
    feed = feedparser.parse(resp.text)

    items = []
    for entry in feed.entries:
        items.append({
            "title": strip_html(entry.get("title", "")),
            "link": entry.get("link", "").strip(),
            "description": strip_html(entry.get("summary") or entry.get("description") or ""),
            "pub_date": _parse_date(entry),
            "image_url": _extract_feed_image(entry) or "",
        })
    return items


def _parse_date(entry) -> Optional[str]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed:
        return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
    for field in ("published", "updated"):
        ds = entry.get(field)
        if ds:
            try:
                return dateparser.parse(ds).isoformat()
            except (ValueError, OverflowError):
                return None
    return None


def _extract_feed_image(entry) -> Optional[str]:
    """Try enclosure, media:content, media:thumbnail, then <img> in the markup."""
    for enc in entry.get("enclosures", []):
        href = enc.get("href") or enc.get("url")
        if href and (not enc.get("type") or enc.get("type", "").startswith("image")):
            return href

    for mc in entry.get("media_content", []):
        if mc.get("url"):
            return mc["url"]

    for mt in entry.get("media_thumbnail", []):
        if mt.get("url"):
            return mt["url"]

    for c in entry.get("content", []):
        img = _find_img_in_html(c.get("value", ""))
        if img:
            return img

    for field in ("summary", "description"):
        img = _find_img_in_html(entry.get(field, ""))
        if img:
            return img

    return None


def _find_img_in_html(html: str) -> Optional[str]:
    match = re.search(r'<img[^>]+src=["\']([^"\']+)["\']', html or "", re.IGNORECASE)
    return match.group(1) if match else None


# ── Item helpers ──────────────────────────────────────────────────────

def slugify(text: str) -> str:
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text[:100]


def categorize(feed_url: str) -> str:
    if "/26/manaus" in feed_url:
        return "Manaus"
    if "famosos" in feed_url:
        return "Entretenimento"
    if "amazonas" in feed_url:
        return "Amazonas"
    return "Geral"


def image_credit(link: str) -> str:
    host = urlparse(link).hostname
    return f"Fonte: {host}" if host else ""


# ── Import ────────────────────────────────────────────────────────────

def import_feed(feed_url: str, db, rewriter, delay: float = 1.0,
                timeout: int = 30) -> list[dict]:
    """Import new items from one feed. Returns [{"title", "slug"}] for inserted rows."""
    imported = []
    category = categorize(feed_url)

    for item in fetch_feed(feed_url, timeout=timeout):
        title, link, description = item["title"], item["link"], item["description"]
        if not title or not link or not description:
            continue
        if db.link_exists(link):
            continue

        try:
            rewritten = rewriter.rewrite_feed_item(title, description)
        except RewriteError as e:
            logger.error(f"  {e}")
            continue
        if not rewritten:
            continue
        new_title, new_content = rewritten

        slug = slugify(new_title)
        row = db.add_article(
            title=new_title,
            original_title=title,
            content=new_content,
            original_content=description,
            canonical_path=slug,
            category=category,
            image_url=item["image_url"] or None,
            image_credit=image_credit(link) or None,
            original_link=link,
            pub_date=item["pub_date"],
        )
        if row is None:
            continue

        imported.append({"title": new_title, "slug": slug})
        logger.info(f"  + {new_title[:80]}")
        if delay:
            time.sleep(delay)

    return imported


def import_feeds(feeds: list[str], db, rewriter, delay: float = 1.0,
                 timeout: int = 30) -> dict:
    """Run one pass over all feeds. A failing feed is logged and skipped."""
    articles = []
    for feed_url in feeds:
        logger.info(f"Feed {feed_url}")
        try:
            articles.extend(import_feed(feed_url, db, rewriter, delay=delay, timeout=timeout))
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch feed {feed_url}: {e}")
        except Exception as e:
            logger.error(f"Error processing feed {feed_url}: {e}")
    return {"imported": len(articles), "articles": articles}

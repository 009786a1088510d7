"""
Portal scraper: collects article links from news portals' front pages,
extracts clean article text, rewrites it and stores it for review.

Portals are described in config.json with CSS selectors (no regex on the
markup); junk (ads, institutional blocks, scripts) is removed with
BeautifulSoup before text is extracted.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

import httpx
from bs4 import BeautifulSoup
from postgrest.exceptions import APIError

from seliga.rewrite import IGNORED, MIN_WORDS, RewriteError, count_words, fit_length

logger = logging.getLogger(__name__)

BROWSER_UA = ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
              "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36")

TRACKING_PARAMS = {"utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content"}

AD_ATTR_SELECTOR = "[data-ad], [data-ads], [class*='ad-'], [class*='-ad']"

DIRTY_RE = re.compile(r"publieditorial|publipost|patrocinado|publicidade", re.IGNORECASE)

MIN_PARAGRAPH_WORDS = 120
MAX_ITEMS = 15
DEFAULT_ITEMS = 8


class ScrapeError(Exception):
    """A page could not be fetched or parsed."""


@dataclass
class Portal:
    id: str
    label: str
    domain: str
    start_url: str
    link_selector: str = "a"
    title_selectors: list = field(default_factory=lambda: ["h1"])
    article_selectors: list = field(default_factory=lambda: [
        "article", "main article", "div[itemprop='articleBody']"])
    image_selectors: list = field(default_factory=lambda: [
        "article figure img", "meta[property='og:image']"])
    remove_selectors: list = field(default_factory=lambda: [
        "script, style, noscript, iframe, svg, canvas",
        "header, footer, nav, aside",
        ".ads, .advertising, .ad, .publicidade, .sponsored, .banner",
        ".share, .social, .newsletter, .related, .breadcrumbs, .comments",
    ])
    exclude_paths: list = field(default_factory=list)
    categories: list = field(default_factory=list)
    # Use <body> when no article container matches
    body_fallback: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Portal":
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def for_url(cls, url: str) -> "Portal":
        """Generic portal with default selectors for an arbitrary article URL."""
        host = urlparse(url).hostname or ""
        return cls(id=host, label=host, domain=host, start_url=url, body_fallback=True)

    def guess_category(self, url: str) -> str:
        for needle, category in self.categories:
            if needle in url:
                return category
        return "Geral"


@dataclass
class ScrapedArticle:
    url: str
    title: str
    text: str
    image: Optional[str]
    category: str
    dirty: bool

    @property
    def word_count(self) -> int:
        return count_words(self.text)


# ── Utilities ─────────────────────────────────────────────────────────

def normalize_whitespace(s: str) -> str:
    return re.sub(r"\s+", " ", s.replace("\u00a0", " ")).strip()


def abs_url(base: str, href: str) -> Optional[str]:
    if not href or href.startswith(("javascript:", "mailto:", "#")):
        return None
    url = urljoin(base, href)
    return url if url.startswith(("http://", "https://")) else None


def strip_tracking(url: str) -> str:
    parts = urlparse(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
             if k not in TRACKING_PARAMS]
    return urlunparse(parts._replace(query=urlencode(query), fragment=""))


def looks_like_article_url(url: str, portal: Portal) -> bool:
    parts = urlparse(url)
    if not parts.hostname or portal.domain not in parts.hostname:
        return False
    return not any(re.search(p, parts.path, re.IGNORECASE) for p in portal.exclude_paths)


def rewrite_title_for_headline(title: str) -> str:
    """Drop the ' | Site name' suffix unless that leaves almost nothing."""
    s = re.sub(r"\s+\|\s+.*$", "", title).strip()
    return s if len(s) > 10 else title


# ── Fetch helpers ─────────────────────────────────────────────────────

def fetch_document(url: str, timeout: int = 30) -> BeautifulSoup:
    """GET a page with a browser-like User-Agent and parse it."""
    try:
        resp = httpx.get(url, timeout=timeout, follow_redirects=True, headers={
            "User-Agent": BROWSER_UA,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.5",
        })
    except httpx.HTTPError as e:
        raise ScrapeError(f"Falha ao buscar {url}: {e}") from e
    if not resp.is_success:
        raise ScrapeError(f"HTTP {resp.status_code} ao buscar {url}")
    return BeautifulSoup(resp.text, "html.parser")


def select_first(soup, selectors: list[str], attr: str = "text") -> Optional[str]:
    """First non-empty text / src / content among the selectors' first matches."""
    for sel in selectors:
        el = soup.select_one(sel)
        if el is None:
            continue
        if attr == "text":
            value = normalize_whitespace(el.get_text(" "))
        elif attr == "src":
            value = el.get("src") or el.get("data-src") or el.get("content")
        else:
            value = el.get(attr)
        if value:
            return value
    return None


def extract_best_image(soup, portal: Portal, base_url: str) -> Optional[str]:
    src = select_first(soup, portal.image_selectors, "src")
    if src:
        return abs_url(base_url, src) or src
    return select_first(soup, ["meta[property='og:image']"], "content")


def purge(container, portal: Portal):
    """Remove junk nodes from the container, keeping the good text."""
    for el in container.select(", ".join(portal.remove_selectors)):
        el.decompose()
    for el in container.select(AD_ATTR_SELECTOR):
        el.decompose()


# ── Links ─────────────────────────────────────────────────────────────

def extract_news_links(portal: Portal, timeout: int = 30) -> list[str]:
    soup = fetch_document(portal.start_url, timeout=timeout)
    seen = set()
    urls = []
    for a in soup.select(portal.link_selector):
        url = abs_url(portal.start_url, a.get("href", ""))
        if not url:
            continue
        url = strip_tracking(url)
        if url in seen or not looks_like_article_url(url, portal):
            continue
        seen.add(url)
        urls.append(url)
    return urls


# ── Articles ──────────────────────────────────────────────────────────

def parse_article(soup, url: str, portal: Portal) -> Optional[ScrapedArticle]:
    title = (select_first(soup, portal.title_selectors, "text")
             or select_first(soup, ["meta[property='og:title']"], "content")
             or "")
    title = normalize_whitespace(title)

    # Sponsored-content check runs on the untouched page
    dirty = bool(DIRTY_RE.search(soup.get_text(" ")))
    image = extract_best_image(soup, portal, url)

    container = None
    for sel in portal.article_selectors:
        container = soup.select_one(sel)
        if container is not None:
            break
    if container is None:
        container = soup.find("main") or soup.find("article")
    if container is None and portal.body_fallback:
        container = soup.body or soup
    if container is None:
        return None

    purge(container, portal)

    paragraphs = [normalize_whitespace(p.get_text(" ")) for p in container.find_all("p")]
    text = " ".join(p for p in paragraphs if p).strip()
    if count_words(text) < MIN_PARAGRAPH_WORDS:
        text = normalize_whitespace(container.get_text(" "))

    return ScrapedArticle(
        url=url,
        title=title,
        text=text,
        image=image,
        category=portal.guess_category(url),
        dirty=dirty,
    )


def extract_article(url: str, portal: Portal, timeout: int = 30) -> Optional[ScrapedArticle]:
    return parse_article(fetch_document(url, timeout=timeout), url, portal)


def scrape_url(url: str, rewriter, timeout: int = 30) -> dict:
    """
    Fetch one article URL and turn it into structured content.

    The text is rewritten when it passes the quality gate and a Groq key is
    configured; otherwise, or when Groq fails, the cleaned source text is
    returned with rewritten=False.
    Raises ScrapeError when the page can't be fetched.
    """
    article = extract_article(url, Portal.for_url(url), timeout=timeout)

    content = article.text
    rewritten = False
    if rewriter.enabled and not article.dirty and article.word_count >= MIN_WORDS:
        try:
            out = rewriter.rewrite_article(article.title, article.text, article.url,
                                           fallback=False)
        except RewriteError as e:
            logger.warning(f"Rewrite failed for {url}: {e}")
            out = IGNORED
        if out.strip() != IGNORED:
            content = fit_length(out, article.text)
            rewritten = True

    return {
        "content": content,
        "title": rewrite_title_for_headline(article.title),
        "image": article.image,
        "url": article.url,
        "rewritten": rewritten,
    }


# ── Portal run ────────────────────────────────────────────────────────

def clamp_max(value) -> int:
    try:
        n = int(str(value if value is not None else DEFAULT_ITEMS).strip())
    except ValueError:
        n = DEFAULT_ITEMS
    if n == 0:
        n = DEFAULT_ITEMS
    return min(max(n, 1), MAX_ITEMS)


def scrape_portal(portal: Portal, db, rewriter, max_items: int = DEFAULT_ITEMS,
                  timeout: int = 30) -> dict:
    """Scrape up to max_items new articles from a portal. Returns a run summary."""
    summary = {
        "portalId": portal.id,
        "label": portal.label,
        "fetched": 0,
        "processed": 0,
        "inserted": 0,
        "ignored": 0,
        "errors": [],
    }

    try:
        links = extract_news_links(portal, timeout=timeout)
        summary["fetched"] = len(links)
    except ScrapeError as e:
        summary["errors"].append(f"Falha ao extrair links: {e}")
        links = []

    for url in links[:max_items]:
        try:
            if db.url_exists(url):
                continue

            art = extract_article(url, portal, timeout=timeout)
            if art is None or art.dirty or art.word_count < MIN_WORDS:
                summary["ignored"] += 1
                continue

            content = rewriter.rewrite_article(art.title, art.text, portal.label)
            if content.strip() == IGNORED:
                summary["ignored"] += 1
                continue
            content = fit_length(content, art.text)

            try:
                db.add_scraped(
                    titulo_original=art.title,
                    titulo_reescrito=rewrite_title_for_headline(art.title),
                    conteudo_reescrito=content,
                    url_original=url,
                    fonte=portal.label,
                    imagem_url=art.image or None,
                    categoria=art.category,
                    status="gerado",
                )
                summary["inserted"] += 1
                logger.info(f"  + {art.title[:80]}")
            except APIError as e:
                summary["errors"].append(f"DB insert ({url}): {e.message}")
            summary["processed"] += 1
        except Exception as e:
            summary["errors"].append(f"Falha em {url}: {e}")

    return summary

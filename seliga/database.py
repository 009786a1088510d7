"""Database for the news portal, backed by Supabase (PostgREST + Storage)."""

from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, client: Client, table: str = "noticias",
                 scraped_table: str = "noticias_scraped", bucket: str = "midia"):
        self.client = client
        self.table = table
        self.scraped_table = scraped_table
        self.bucket = bucket

    # ── Write ─────────────────────────────────────────────────────────

    def add_article(self, **kwargs) -> Optional[dict]:
        kwargs.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        try:
            resp = self.client.table(self.table).insert(kwargs).execute()
        except APIError as e:
            logger.error(f"Failed to insert article: {e.message}")
            return None
        return resp.data[0] if resp.data else None

    def add_scraped(self, **kwargs) -> Optional[dict]:
        """Store a scraped article for editorial review. Raises APIError."""
        kwargs.setdefault("data_coleta", datetime.now(timezone.utc).isoformat())
        kwargs.setdefault("status", "gerado")
        resp = self.client.table(self.scraped_table).insert(kwargs).execute()
        return resp.data[0] if resp.data else None

    # ── Read ──────────────────────────────────────────────────────────

    def get_article(self, aid) -> Optional[dict]:
        """Fetch a single article row. Raises APIError on query failure."""
        resp = (
            self.client.table(self.table)
            .select("id, title, content, category, image_url, created_at")
            .eq("id", aid)
            .limit(1)
            .execute()
        )
        return resp.data[0] if resp.data else None

    def get_articles(self, category=None, limit=24, offset=0) -> list[dict]:
        query = self.client.table(self.table).select(
            "id, title, content, category, image_url, created_at")
        if category:
            query = query.eq("category", category)
        resp = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return resp.data or []

    def count_articles(self, category=None) -> int:
        query = self.client.table(self.table).select("id", count="exact")
        if category:
            query = query.eq("category", category)
        resp = query.limit(1).execute()
        return resp.count or 0

    def link_exists(self, link: str) -> bool:
        try:
            resp = (
                self.client.table(self.table)
                .select("id")
                .eq("original_link", link)
                .limit(1)
                .execute()
            )
        except APIError as e:
            logger.error(f"Error checking existing article: {e.message}")
            return False
        return bool(resp.data)

    def url_exists(self, url: str) -> bool:
        try:
            resp = (
                self.client.table(self.scraped_table)
                .select("id")
                .eq("url_original", url)
                .limit(1)
                .execute()
            )
        except APIError as e:
            logger.error(f"DB exists check: {e.message}")
            return False
        return bool(resp.data)

    # ── Storage ───────────────────────────────────────────────────────

    def image_url(self, path: str) -> str:
        """Resolve a storage object path to a public URL; absolute URLs pass through."""
        if not path or path.startswith(("http://", "https://", "data:")):
            return path
        return self.client.storage.from_(self.bucket).get_public_url(path.lstrip("/"))


def create_database(url: str | None, key: str | None, **kwargs) -> Database:
    """Construct a Database handle from a project URL and API key."""
    if not url or not key:
        raise RuntimeError("Configure a URL e a chave do Supabase "
                           "(SUPABASE_URL e SUPABASE_SERVICE_ROLE_KEY).")
    return Database(create_client(url, key), **kwargs)

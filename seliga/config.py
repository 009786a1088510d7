"""Configuration loader and site config helpers."""

from __future__ import annotations
import json
import os
import re
from pathlib import Path
from typing import Any


class Config:
    """Loads config.json and reads secrets from the environment."""

    def __init__(self, config_path: str | None = None, environ: dict | None = None):
        self.config_path = Path(config_path or os.environ.get("SELIGA_CONFIG", "config.json"))
        self.environ = os.environ if environ is None else environ
        self._data: dict = {}
        self.reload()

    def reload(self):
        with open(self.config_path, "r", encoding="utf-8") as f:
            self._data = json.load(f)

    # ── Site ──────────────────────────────────────────────────────────

    @property
    def site(self) -> dict:
        return self._data["site"]

    @property
    def site_name(self) -> str:
        return self.site.get("name", "SeligaManaux")

    @property
    def site_url(self) -> str:
        return self.site["url"].rstrip("/")

    @property
    def fallback_image(self) -> str:
        return self.site["fallback_image"]

    @property
    def fallback_category(self) -> str:
        return self.site.get("fallback_category", "Geral")

    @property
    def nav_links(self) -> list[dict]:
        return self.site.get("nav", [])

    # ── Supabase ──────────────────────────────────────────────────────

    @property
    def supabase_public_url(self) -> str:
        return self._data["supabase"]["url"]

    @property
    def supabase_anon_key(self) -> str:
        return self._data["supabase"]["anon_key"]

    @property
    def articles_table(self) -> str:
        return self._data["supabase"].get("table", "noticias")

    @property
    def scraped_table(self) -> str:
        return self._data["supabase"].get("scraped_table", "noticias_scraped")

    @property
    def storage_bucket(self) -> str:
        return self._data["supabase"].get("bucket", "midia")

    @property
    def supabase_url(self) -> str | None:
        return self.environ.get("SUPABASE_URL") or None

    @property
    def supabase_service_key(self) -> str | None:
        return self.environ.get("SUPABASE_SERVICE_ROLE_KEY") or None

    # ── Groq ──────────────────────────────────────────────────────────

    @property
    def groq_api_key(self) -> str:
        return self.environ.get("GROQ_API_KEY", "")

    @property
    def import_groq_api_key(self) -> str:
        return self.environ.get("GROQ_API_KEY_2") or self.groq_api_key

    @property
    def groq_model(self) -> str:
        return self.environ.get("GROQ_MODEL") or self._data.get("groq", {}).get(
            "model", "llama-3.1-70b-specdec")

    @property
    def import_model(self) -> str:
        return self._data.get("groq", {}).get("import_model", "llama-3.1-8b-instant")

    # ── Handlers ──────────────────────────────────────────────────────

    @property
    def render(self) -> dict:
        return self._data.get("render", {})

    @property
    def redirect_browsers(self) -> bool:
        return bool(self.render.get("redirect_browsers", False))

    @property
    def cache_control(self) -> str:
        return self.render.get("cache_control", "public, max-age=3600, s-maxage=300")

    @property
    def rss_feeds(self) -> list[str]:
        env = self.environ.get("RSS_FEEDS")
        if env:
            return [f for f in re.split(r"\s*,\s*", env.strip()) if f]
        return self._data.get("import", {}).get("feeds", [])

    @property
    def import_delay(self) -> float:
        return float(self._data.get("import", {}).get("delay", 1.0))

    @property
    def timeout(self) -> int:
        return int(self._data.get("http", {}).get("timeout", 30))

    def get_portals(self) -> dict[str, dict]:
        return {p["id"]: p for p in self._data.get("portals", [])}

    def get_portal(self, portal_id: str) -> dict | None:
        return self.get_portals().get(portal_id)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

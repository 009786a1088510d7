"""Theme preference and navigation state for the server-rendered pages."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

THEME_COOKIE = "darkMode"
THEME_MAX_AGE = 365 * 24 * 3600

HOME_HREF = "/"
# Old file names still linked from outside
LEGACY_PAGES = {"ultimasnoticias.html": "ultimas-noticias.html"}


@dataclass(frozen=True)
class ThemePreference:
    dark: bool = True
    # True when nothing was stored yet and the default has to be persisted
    is_new: bool = False

    @classmethod
    def from_stored(cls, value: Optional[str]) -> "ThemePreference":
        if value is None:
            return cls(dark=True, is_new=True)
        return cls(dark=value != "false")

    def toggled(self) -> "ThemePreference":
        return ThemePreference(dark=not self.dark)

    @property
    def stored_value(self) -> str:
        return "true" if self.dark else "false"

    @property
    def body_class(self) -> str:
        return "" if self.dark else "light-mode"

    @property
    def button_label(self) -> str:
        return "🌙 Dark" if self.dark else "☀️ Light"


def _last_segment(path: str) -> str:
    return path.rstrip("/").split("/")[-1] if path.strip("/") else ""


def active_nav_href(path: str, links: list[dict], home_href: str = HOME_HREF) -> Optional[str]:
    """Return the href of the nav link matching the request path, or None."""
    current = path.split("?")[0].split("/")[-1] or "index.html"
    if current == "index.html":
        return home_href if any(link["href"] == home_href for link in links) else None

    current = LEGACY_PAGES.get(current, current)
    for link in links:
        href = link["href"]
        if href != home_href and _last_segment(href) == current:
            return href
    return None

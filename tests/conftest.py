from pathlib import Path
from unittest.mock import MagicMock

import pytest

from seliga.config import Config
from web import create_app

ROOT = Path(__file__).resolve().parent.parent

ENVIRON = {
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role-key",
    "GROQ_API_KEY_2": "gsk-import-key",
}


class FakeDatabase:
    """In-memory stand-in for seliga.database.Database."""

    def __init__(self, articles=None):
        self.articles = {str(a["id"]): a for a in (articles or [])}
        self.inserted = []
        self.scraped = []
        self.known_links = set()
        self.known_urls = set()

    def get_article(self, aid):
        return self.articles.get(str(aid))

    def get_articles(self, category=None, limit=24, offset=0):
        rows = [a for a in self.articles.values()
                if not category or a.get("category") == category]
        return rows[offset:offset + limit]

    def count_articles(self, category=None):
        return len(self.get_articles(category=category, limit=10_000))

    def link_exists(self, link):
        return link in self.known_links

    def url_exists(self, url):
        return url in self.known_urls

    def add_article(self, **kwargs):
        self.inserted.append(kwargs)
        self.known_links.add(kwargs.get("original_link"))
        return {"id": len(self.inserted), **kwargs}

    def add_scraped(self, **kwargs):
        self.scraped.append(kwargs)
        return {"id": len(self.scraped), **kwargs}

    def image_url(self, path):
        return path


def make_response(status_code=200, text="", json_body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.is_success = 200 <= status_code < 300
    resp.text = text
    resp.json.return_value = json_body
    return resp


@pytest.fixture
def config():
    return Config(str(ROOT / "config.json"), environ=dict(ENVIRON))


@pytest.fixture
def db():
    return FakeDatabase([
        {
            "id": 7,
            "title": 'Prefeitura anuncia "Operação Chuva" em Manaus',
            "content": "<p>A prefeitura de Manaus anunciou nesta segunda-feira um plano "
                       "emergencial.</p>\n\n<p>O plano prevê   limpeza de igarapés.</p>",
            "category": "Manaus",
            "image_url": "https://cdn.example.com/chuva.jpg",
            "created_at": "2025-10-06T10:00:00+00:00",
        },
        {
            "id": 8,
            "title": "",
            "content": "",
            "category": None,
            "image_url": None,
            "created_at": None,
        },
    ])


@pytest.fixture
def app(config, db):
    app = create_app(config, public_db=db, service_db=db)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()

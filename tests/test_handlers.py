from unittest.mock import patch

from seliga.config import Config
from web import create_app

from conftest import ENVIRON, ROOT, FakeDatabase, make_response

PAGE = """<html><head><meta property="og:image" content="https://img.example.com/foto.jpg"></head>
<body><article><h1>Governo libera verba para escolas | Jornal do Norte</h1>
<p>O governo estadual liberou verba para reforma de escolas no interior.</p>
<p>As obras começam no próximo mês.</p></article></body></html>"""

ARTICLE_URL = "https://jornaldonorte.example.com/noticia/verba-escolas"


class TestScrapeAndRewrite:
    def test_preflight(self, client):
        resp = client.options("/scrape-and-rewrite")

        assert resp.status_code == 200
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

    def test_missing_url(self, client):
        resp = client.post("/scrape-and-rewrite", json={})

        assert resp.status_code == 400
        assert "urlParaScrape" in resp.get_json()["error"]
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

    def test_invalid_json(self, client):
        resp = client.post("/scrape-and-rewrite", data="{not json",
                           content_type="application/json")

        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_fetch_failure(self, client):
        with patch("seliga.scraper.httpx.get", return_value=make_response(status_code=404)):
            resp = client.post("/scrape-and-rewrite", json={"urlParaScrape": ARTICLE_URL})

        assert resp.status_code == 400
        assert resp.get_json()["error"].startswith("HTTP 404")

    def test_returns_structured_content(self, client):
        with patch("seliga.scraper.httpx.get", return_value=make_response(text=PAGE)) as get:
            resp = client.post("/scrape-and-rewrite", json={"urlParaScrape": f"  {ARTICLE_URL} "})

        assert resp.status_code == 200
        assert get.call_args.args[0] == ARTICLE_URL
        body = resp.get_json()
        assert body["title"] == "Governo libera verba para escolas"
        assert body["content"] == ("Governo libera verba para escolas | Jornal do Norte "
                                   "O governo estadual liberou verba para reforma de escolas no interior. "
                                   "As obras começam no próximo mês.")
        assert body["image"] == "https://img.example.com/foto.jpg"
        assert body["url"] == ARTICLE_URL
        assert body["rewritten"] is False

    def test_page_without_article_markup(self, client):
        page = "<html><body><div><h1>Titulo</h1><p>Texto da notícia.</p></div></body></html>"
        with patch("seliga.scraper.httpx.get", return_value=make_response(text=page)):
            resp = client.post("/scrape-and-rewrite", json={"urlParaScrape": "https://x.example.com/a"})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["title"] == "Titulo"
        assert body["content"] == "Titulo Texto da notícia."
        assert body["image"] is None


class TestScraper:
    SUMMARY = {"portalId": "acritica", "label": "A Crítica", "fetched": 10,
               "processed": 3, "inserted": 2, "ignored": 4, "errors": []}

    def test_get_is_not_allowed(self, client):
        resp = client.get("/scraper")

        assert resp.status_code == 405
        assert "portalId" in resp.get_json()["error"]

    def test_invalid_json(self, client):
        resp = client.post("/scraper", data="[oops", content_type="application/json")

        assert resp.status_code == 400
        assert resp.get_json() == {"error": "JSON inválido."}

    def test_unknown_portal(self, client):
        resp = client.post("/scraper", json={"portalId": "diario-ficticio"})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "portalId desconhecido: diario-ficticio"

    def test_runs_portal_with_clamped_max(self, client, db):
        with patch("web.scrape_portal", return_value=dict(self.SUMMARY)) as run:
            resp = client.post("/scraper", json={"portalId": "acritica", "max": 40})

        assert resp.status_code == 200
        assert resp.get_json() == self.SUMMARY
        portal, used_db, rewriter = run.call_args.args
        assert portal.id == "acritica"
        assert portal.start_url == "https://www.acritica.com/"
        assert used_db is db
        assert run.call_args.kwargs["max_items"] == 15

    def test_default_max(self, client):
        with patch("web.scrape_portal", return_value=dict(self.SUMMARY)) as run:
            client.post("/scraper", json={"portalId": "g1-am"})

        assert run.call_args.kwargs["max_items"] == 8


class TestRssImport:
    def test_missing_supabase_configuration(self):
        config = Config(str(ROOT / "config.json"), environ={"GROQ_API_KEY": "gsk"})
        resp = create_app(config).test_client().post("/rss_import")

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Missing Supabase configuration"}

    def test_missing_groq_key(self):
        environ = {k: v for k, v in ENVIRON.items() if not k.startswith("GROQ")}
        config = Config(str(ROOT / "config.json"), environ=environ)
        resp = create_app(config, service_db=FakeDatabase()).test_client().post("/rss_import")

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Missing GROQ API key"}

    def test_imports_configured_feeds(self, client, config, db):
        result = {"imported": 1, "articles": [{"title": "Novo", "slug": "novo"}]}
        with patch("web.import_feeds", return_value=result) as run:
            resp = client.get("/rss_import")

        assert resp.status_code == 200
        assert resp.get_json() == result
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        feeds, used_db, rewriter = run.call_args.args
        assert feeds == config.rss_feeds
        assert used_db is db
        assert rewriter.api_key == "gsk-import-key"
        assert rewriter.feed_model == "llama-3.1-8b-instant"

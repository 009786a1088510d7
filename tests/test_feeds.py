from unittest.mock import MagicMock, patch

import httpx
import pytest

from seliga.feeds import categorize, fetch_feed, image_credit, import_feed, import_feeds, slugify
from seliga.rewrite import RewriteError

from conftest import FakeDatabase, make_response

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
<channel>
  <title>G1 Amazonas</title>
  <item>
    <title>Chuva forte atinge Manaus</title>
    <link>https://g1.globo.com/am/amazonas/noticia/chuva.ghtml</link>
    <description><![CDATA[<p>Temporal <b>derruba</b> árvores na zona sul.</p>]]></description>
    <pubDate>Mon, 06 Oct 2025 10:00:00 GMT</pubDate>
    <enclosure url="https://s2.glbimg.com/chuva.jpg" type="image/jpeg" length="0"/>
  </item>
  <item>
    <title>Sem descrição</title>
    <link>https://g1.globo.com/am/amazonas/noticia/vazio.ghtml</link>
  </item>
  <item>
    <title>Ponte interditada</title>
    <link>https://g1.globo.com/am/amazonas/noticia/ponte.ghtml</link>
    <description><![CDATA[<img src="https://s2.glbimg.com/ponte.jpg"> Trânsito desviado.]]></description>
  </item>
</channel>
</rss>"""

FEED_URL = "https://g1.globo.com/rss/g1/am/amazonas/rss2.xml"


@pytest.fixture
def rss_get():
    with patch("seliga.feeds.httpx.get", return_value=make_response(text=RSS)) as mock_get:
        yield mock_get


class TestHelpers:
    def test_slugify(self):
        assert slugify("Ação em Manaus: 100% confirmada!") == "acao-em-manaus-100-confirmada"
        assert slugify("  --Já--  ") == "ja"
        assert len(slugify("palavra " * 40)) == 100

    @pytest.mark.parametrize("url,category", [
        ("https://nossoshowam.com/feed/26/manaus/", "Manaus"),
        ("https://nossoshowam.com/feed/2/famosos-e-entretenimento/", "Entretenimento"),
        ("https://g1.globo.com/rss/g1/am/amazonas/rss2.xml", "Amazonas"),
        ("https://www.portaldoholanda.com.br/feed", "Geral"),
    ])
    def test_categorize(self, url, category):
        assert categorize(url) == category

    def test_image_credit(self):
        assert image_credit("https://g1.globo.com/am/x.ghtml") == "Fonte: g1.globo.com"
        assert image_credit("not a url") == ""


class TestFetchFeed:
    def test_parses_items(self, rss_get):
        items = fetch_feed(FEED_URL)

        assert len(items) == 3
        first = items[0]
        assert first["title"] == "Chuva forte atinge Manaus"
        assert first["link"] == "https://g1.globo.com/am/amazonas/noticia/chuva.ghtml"
        assert first["description"] == "Temporal derruba árvores na zona sul."
        assert first["pub_date"] == "2025-10-06T10:00:00+00:00"
        assert first["image_url"] == "https://s2.glbimg.com/chuva.jpg"
        assert items[1]["description"] == ""
        assert rss_get.call_args.kwargs["headers"]["User-Agent"].startswith("Mozilla/5.0")

    def test_image_from_description_markup(self, rss_get):
        assert fetch_feed(FEED_URL)[2]["image_url"] == "https://s2.glbimg.com/ponte.jpg"

    def test_http_error_propagates(self):
        resp = make_response(status_code=503)
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            "503", request=MagicMock(), response=MagicMock())
        with patch("seliga.feeds.httpx.get", return_value=resp):
            with pytest.raises(httpx.HTTPStatusError):
                fetch_feed(FEED_URL)


class TestImportFeed:
    def test_inserts_rewritten_items(self, rss_get):
        db = FakeDatabase()
        rewriter = MagicMock()
        rewriter.rewrite_feed_item.side_effect = [
            ("Temporal causa estragos na Zona Sul", "Texto reescrito 1"),
            ("Ponte é interditada", "Texto reescrito 2"),
        ]

        imported = import_feed(FEED_URL, db, rewriter, delay=0)

        assert imported == [
            {"title": "Temporal causa estragos na Zona Sul", "slug": "temporal-causa-estragos-na-zona-sul"},
            {"title": "Ponte é interditada", "slug": "ponte-e-interditada"},
        ]
        row = db.inserted[0]
        assert row["original_title"] == "Chuva forte atinge Manaus"
        assert row["original_content"] == "Temporal derruba árvores na zona sul."
        assert row["content"] == "Texto reescrito 1"
        assert row["category"] == "Amazonas"
        assert row["image_url"] == "https://s2.glbimg.com/chuva.jpg"
        assert row["image_credit"] == "Fonte: g1.globo.com"
        assert row["original_link"] == "https://g1.globo.com/am/amazonas/noticia/chuva.ghtml"
        assert row["canonical_path"] == "temporal-causa-estragos-na-zona-sul"
        # The item without description is never sent to the model
        assert rewriter.rewrite_feed_item.call_count == 2

    def test_skips_known_links(self, rss_get):
        db = FakeDatabase()
        db.known_links.add("https://g1.globo.com/am/amazonas/noticia/chuva.ghtml")
        rewriter = MagicMock()
        rewriter.rewrite_feed_item.return_value = ("Novo", "Conteúdo")

        imported = import_feed(FEED_URL, db, rewriter, delay=0)

        assert [i["title"] for i in imported] == ["Novo"]
        assert rewriter.rewrite_feed_item.call_count == 1

    def test_rewrite_failures_skip_the_item(self, rss_get):
        db = FakeDatabase()
        rewriter = MagicMock()
        rewriter.rewrite_feed_item.side_effect = [RewriteError("Groq API error: 500"), None]

        assert import_feed(FEED_URL, db, rewriter, delay=0) == []
        assert db.inserted == []

    def test_failed_insert_is_not_counted(self, rss_get):
        db = FakeDatabase()
        db.add_article = MagicMock(return_value=None)
        rewriter = MagicMock()
        rewriter.rewrite_feed_item.return_value = ("Novo", "Conteúdo")

        assert import_feed(FEED_URL, db, rewriter, delay=0) == []


class TestImportFeeds:
    def test_failing_feed_does_not_stop_the_pass(self):
        rewriter = MagicMock()
        rewriter.rewrite_feed_item.return_value = ("Novo título", "Conteúdo")

        def fake_get(url, **kwargs):
            if "broken" in url:
                raise httpx.ConnectError("connection refused")
            return make_response(text=RSS)

        with patch("seliga.feeds.httpx.get", side_effect=fake_get):
            result = import_feeds(["https://broken.example/feed", FEED_URL],
                                  FakeDatabase(), rewriter, delay=0)

        assert result["imported"] == 2
        assert result["articles"][0] == {"title": "Novo título", "slug": "novo-titulo"}

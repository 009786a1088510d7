#!/usr/bin/env python3
"""
SeligaManaux web application

Server-rendered news pages (dark-mode toggle, responsive navigation) plus the
HTTP handlers that used to run as edge functions:

    /render-artigo        share preview with Open Graph tags for one article
    /rss_import           import + rewrite items from the configured RSS feeds
    /scrape-and-rewrite   fetch one URL and turn it into structured content
    /scraper              crawl a configured portal and store rewritten articles

Usage:
    python web.py                    # Start on port 5000
    python web.py --port 8080        # Custom port
    python web.py --host 0.0.0.0     # Listen on all interfaces
    flask --app web:create_app run   # Via the Flask CLI
"""

import argparse
import logging
from urllib.parse import quote

import httpx
from dateutil import parser as dateparser
from flask import (Blueprint, Flask, Response, current_app, jsonify, make_response,
                   redirect, request)
from markupsafe import Markup, escape
from postgrest.exceptions import APIError

from seliga.config import Config
from seliga.database import Database, create_database
from seliga.feeds import import_feeds
from seliga.render import ShareTemplate, is_bot, render_share_page, summarize
from seliga.rewrite import GroqRewriter
from seliga.scraper import Portal, ScrapeError, clamp_max, scrape_portal, scrape_url
from seliga.site import THEME_COOKIE, THEME_MAX_AGE, ThemePreference, active_nav_href

logger = logging.getLogger(__name__)

bp = Blueprint("seliga", __name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

# Inline scripts/styles, Supabase CDN, Google Ads and Google Fonts
CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net https://pagead2.googlesyndication.com",
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
    "img-src * data: blob:",
    "connect-src *",
    "font-src 'self' https://fonts.gstatic.com",
    "frame-src *",
])

RESPONSE_HEADERS = {
    **CORS_HEADERS,
    "Content-Type": "text/html; charset=utf-8",
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}

TEXT_HEADERS = {**RESPONSE_HEADERS, "Content-Type": "text/plain; charset=utf-8"}

PER_PAGE = 24


def create_app(config: Config | None = None, public_db: Database | None = None,
               service_db: Database | None = None) -> Flask:
    """
    Build the application. Database handles may be passed in; otherwise the
    public one is built from config.json and the service-role one from the
    environment on first use.
    """
    app = Flask(__name__)
    app.extensions["seliga"] = {
        "config": config or Config(),
        "public_db": public_db,
        "service_db": service_db,
        "template": ShareTemplate.load(),
    }
    app.register_blueprint(bp)
    return app


def _state() -> dict:
    return current_app.extensions["seliga"]


def _config() -> Config:
    return _state()["config"]


def _db_kwargs(config: Config) -> dict:
    return dict(table=config.articles_table, scraped_table=config.scraped_table,
                bucket=config.storage_bucket)


def _public_db() -> Database:
    state = _state()
    if state["public_db"] is None:
        config = state["config"]
        state["public_db"] = create_database(config.supabase_public_url,
                                             config.supabase_anon_key, **_db_kwargs(config))
    return state["public_db"]


def _service_db() -> Database:
    state = _state()
    if state["service_db"] is None:
        config = state["config"]
        state["service_db"] = create_database(config.supabase_url,
                                              config.supabase_service_key, **_db_kwargs(config))
    return state["service_db"]


def _json(payload, status: int = 200) -> Response:
    resp = jsonify(payload)
    resp.status_code = status
    resp.headers.update(CORS_HEADERS)
    return resp


def _preflight() -> Response:
    return Response("ok", headers=RESPONSE_HEADERS)


# ── Layout ────────────────────────────────────────────────────────────

def _display_date(value: str) -> str:
    if not value:
        return ""
    try:
        return dateparser.parse(value).strftime("%d/%m/%Y · %H:%M")
    except (ValueError, OverflowError):
        return value[:16]


def _render(content_html, status: int = 200, **ctx) -> Response:
    """Render the full page with base layout, applying the stored theme."""
    config = _config()
    theme = ThemePreference.from_stored(request.cookies.get(THEME_COOKIE))
    page_title = ctx.get("page_title", config.site_name)

    links = config.nav_links
    active = active_nav_href(request.path, links)
    nav_items = ""
    for link in links:
        cls = ' class="ativo"' if link["href"] == active else ""
        nav_items += f'<li><a href="{escape(link["href"])}"{cls}>{escape(link["label"])}</a></li>'

    html = f"""<!DOCTYPE html>
<html lang="pt-BR">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{escape(page_title)}</title>
<link rel="icon" type="image/png" href="{escape(config.fallback_image)}">
<style>
:root {{ --bg: #0f1115; --card-bg: #181b22; --text: #e8e8e8; --muted: #9aa0aa;
         --border: #2a2f3a; --link: #60a5fa; --accent: #ef4444; }}
body.light-mode {{ --bg: #f5f5f4; --card-bg: #fff; --text: #111; --muted: #6b7280;
                   --border: #e5e7eb; --link: #1d4ed8; }}
* {{ margin:0; padding:0; box-sizing:border-box; }}
body {{ font-family: Inter, system-ui, -apple-system, 'Segoe UI', Roboto, sans-serif;
       background: var(--bg); color: var(--text); line-height: 1.55; }}
a {{ color: var(--link); text-decoration: none; }}

/* ── Top Bar ── */
.topbar {{ display: flex; align-items: center; gap: 1rem; padding: 0.75rem 1.5rem;
           border-bottom: 1px solid var(--border); flex-wrap: wrap; }}
.topbar h1 {{ font-size: 1.2rem; font-weight: 900; }}
.topbar h1 span {{ color: var(--accent); }}
.nav-principal {{ flex: 1; }}
.nav-principal ul {{ display: flex; gap: 1rem; list-style: none; }}
.nav-principal a {{ color: var(--muted); font-weight: 600; font-size: 0.9rem; }}
.nav-principal a.ativo {{ color: var(--text); border-bottom: 2px solid var(--accent); }}
.nav-toggle {{ display: none; background: none; border: 0; color: var(--text); font-size: 1.4rem; cursor: pointer; }}
.dark-mode-toggle {{ padding: 0.35rem 0.8rem; border: 1px solid var(--border); border-radius: 6px;
                     background: var(--card-bg); color: var(--text); cursor: pointer; }}

/* ── Card Grid ── */
.grid {{ display: grid; grid-template-columns: repeat(auto-fill, minmax(300px, 1fr));
         gap: 1.25rem; padding: 1.5rem; max-width: 1280px; margin: 0 auto; }}
.card {{ background: var(--card-bg); border: 1px solid var(--border); border-radius: 10px; overflow: hidden; }}
.card-img {{ width: 100%; aspect-ratio: 16/9; object-fit: cover; display: block; }}
.card-body {{ padding: 1rem 1.25rem; }}
.card-badge {{ font-size: 0.7rem; font-weight: 700; text-transform: uppercase; color: var(--accent); }}
.card-date {{ font-size: 0.75rem; color: var(--muted); margin-left: 0.5rem; }}
.card h2 {{ font-size: 1.05rem; margin: 0.4rem 0; }}
.card h2 a {{ color: var(--text); }}
.card-desc {{ font-size: 0.85rem; color: var(--muted); }}

/* ── Article Page ── */
.article-page {{ max-width: 780px; margin: 0 auto; padding: 2rem 1.5rem; }}
.article-page h1 {{ font-size: 1.9rem; font-weight: 800; line-height: 1.25; margin: 0.5rem 0 1rem; }}
.article-hero {{ width: 100%; border-radius: 8px; margin-bottom: 1.5rem; }}
.article-body p {{ margin-bottom: 1.1em; }}
.article-body img {{ max-width: 100%; height: auto; }}

.pagination {{ display: flex; justify-content: center; gap: 0.5rem; padding: 1.5rem; }}
.pagination a, .pagination span {{ padding: 0.4rem 0.9rem; border: 1px solid var(--border); border-radius: 6px; }}
.empty {{ text-align: center; padding: 4rem 2rem; color: var(--muted); }}

@media (max-width: 768px) {{
  .nav-toggle {{ display: block; }}
  .nav-principal {{ flex-basis: 100%; }}
  .nav-principal ul {{ display: none; flex-direction: column; gap: 0.5rem; }}
  .nav-principal ul.open {{ display: flex; }}
  .grid {{ grid-template-columns: 1fr; padding: 1rem; }}
}}
</style>
</head>
<body class="{theme.body_class}">

<div class="topbar">
  <h1><a href="/">Seliga<span>Manaux</span></a></h1>
  <button class="nav-toggle" aria-label="Menu">&#9776;</button>
  <nav class="nav-principal"><ul>{nav_items}</ul></nav>
  <form method="post" action="/tema">
    <button type="submit" class="dark-mode-toggle">{theme.button_label}</button>
  </form>
</div>

{content_html}

<script>
// Mobile menu
const navToggle = document.querySelector('.nav-toggle');
const navList = document.querySelector('.nav-principal ul');
if (navToggle && navList) {{
  navToggle.addEventListener('click', () => navList.classList.toggle('open'));
  navList.querySelectorAll('a').forEach(a =>
    a.addEventListener('click', () => navList.classList.remove('open')));
}}
</script>
</body>
</html>"""

    resp = make_response(html, status)
    if theme.is_new:
        resp.set_cookie(THEME_COOKIE, theme.stored_value, max_age=THEME_MAX_AGE, samesite="Lax")
    return resp


def _card_html(article: dict, db: Database) -> str:
    """Render a single article card."""
    aid = article.get("id", 0)
    img_url = db.image_url(article.get("image_url") or "")
    if img_url:
        img_html = (f'<a href="/noticia/{aid}"><img class="card-img" src="{escape(img_url)}" '
                    f'alt="" loading="lazy" referrerpolicy="no-referrer"></a>')
    else:
        img_html = ""

    title = article.get("title") or "Sem título"
    category = article.get("category") or _config().fallback_category

    return f"""<article class="card">
  {img_html}
  <div class="card-body">
    <span class="card-badge">{escape(category)}</span>
    <span class="card-date">{_display_date(article.get("created_at") or "")}</span>
    <h2><a href="/noticia/{aid}">{escape(title)}</a></h2>
    <p class="card-desc">{escape(summarize(article.get("content") or ""))}</p>
  </div>
</article>"""


def _cards_grid(articles: list[dict], db: Database, page: int = 1, total: int = 0,
                base_url: str = "/") -> str:
    """Render a grid of cards with pagination."""
    if not articles:
        return '<div class="empty"><h2>Nenhuma notícia ainda</h2></div>'

    cards = "\n".join(_card_html(a, db) for a in articles)
    grid = f'<div class="grid">{cards}</div>'

    total_pages = max(1, (total + PER_PAGE - 1) // PER_PAGE)
    if total_pages > 1:
        pages = '<div class="pagination">'
        if page > 1:
            pages += f'<a href="{base_url}?page={page-1}">← Anterior</a>'
        pages += f'<span>{page} / {total_pages}</span>'
        if page < total_pages:
            pages += f'<a href="{base_url}?page={page+1}">Próxima →</a>'
        pages += '</div>'
        grid += pages

    return grid


def _page_arg() -> int:
    try:
        return max(1, int(request.args.get("page", 1)))
    except ValueError:
        return 1


def _listing(category=None, title=None) -> Response:
    db = _public_db()
    page = _page_arg()
    articles = db.get_articles(category=category, limit=PER_PAGE, offset=(page - 1) * PER_PAGE)
    total = db.count_articles(category=category)
    content = _cards_grid(articles, db, page, total, request.path)
    site_name = _config().site_name
    return _render(content, page_title=f"{title} — {site_name}" if title else site_name)


# ── Site ──────────────────────────────────────────────────────────────

@bp.route("/")
@bp.route("/index.html")
def index():
    return _listing()


@bp.route("/ultimas-noticias.html")
@bp.route("/ultimasnoticias.html")
def latest():
    return _listing(title="Últimas Notícias")


@bp.route("/categoria/<nome>")
def by_category(nome):
    return _listing(category=nome, title=nome)


@bp.route("/noticia/<aid>")
def article_detail(aid):
    db = _public_db()
    try:
        article = db.get_article(aid)
    except APIError:
        article = None
    if not article:
        return _render('<div class="empty"><h2>Artigo não encontrado</h2></div>',
                       status=404, page_title="Não encontrado")

    title = article.get("title") or "Sem título"
    img_url = db.image_url(article.get("image_url") or "")
    hero_html = (f'<img class="article-hero" src="{escape(img_url)}" alt="" '
                 f'referrerpolicy="no-referrer">') if img_url else ""
    category = article.get("category") or _config().fallback_category

    # Body is editor-authored HTML from the CMS
    body = article.get("content") or ""
    if "<p" not in body:
        body = "".join(f"<p>{escape(p.strip())}</p>" for p in body.split("\n\n") if p.strip())

    content = f"""<div class="article-page">
  <span class="card-badge">{escape(category)}</span>
  <h1>{escape(title)}</h1>
  <p class="card-date">{_display_date(article.get("created_at") or "")}</p>
  {hero_html}
  <div class="article-body">{Markup(body)}</div>
</div>"""
    return _render(content, page_title=f"{title} — {_config().site_name}")


@bp.route("/artigo.html")
def article_legacy():
    aid = request.args.get("id", "").strip()
    if not aid:
        return redirect("/")
    return article_detail(aid)


@bp.route("/tema", methods=["POST"])
def toggle_theme():
    theme = ThemePreference.from_stored(request.cookies.get(THEME_COOKIE)).toggled()
    target = request.referrer or "/"
    if not target.startswith(request.host_url):
        target = "/"
    resp = redirect(target)
    resp.set_cookie(THEME_COOKIE, theme.stored_value, max_age=THEME_MAX_AGE, samesite="Lax")
    return resp


# ── Edge handlers ─────────────────────────────────────────────────────

@bp.route("/render-artigo", methods=["GET", "OPTIONS"])
def render_artigo():
    if request.method == "OPTIONS":
        return _preflight()

    try:
        article_id = request.args.get("id", "").strip()
        if not article_id:
            return Response("Artigo não especificado.", status=404, headers=TEXT_HEADERS)

        try:
            post = _service_db().get_article(article_id)
        except (APIError, httpx.HTTPError) as e:
            logger.warning(f"Article lookup failed for {article_id}: {e}")
            post = None

        if not post:
            return Response("<h1>Artigo não encontrado</h1>", status=404, headers=RESPONSE_HEADERS)

        config = _config()
        if config.redirect_browsers and not is_bot(request.headers.get("User-Agent", "")):
            resp = redirect(f"{config.site_url}/artigo.html?id={quote(article_id)}", 302)
            resp.headers.update(CORS_HEADERS)
            return resp

        html = render_share_page(post, config, _state()["template"])
        return Response(html, headers={**RESPONSE_HEADERS, "Cache-Control": config.cache_control})
    except Exception as e:
        logger.exception("render-artigo failed")
        return Response(f"Erro interno: {e}", status=500, headers=TEXT_HEADERS)


@bp.route("/rss_import", methods=["GET", "POST", "OPTIONS"])
def rss_import():
    if request.method == "OPTIONS":
        return _preflight()

    config = _config()
    if not config.supabase_url or not config.supabase_service_key:
        return _json({"error": "Missing Supabase configuration"}, 500)
    api_key = config.import_groq_api_key
    if not api_key:
        return _json({"error": "Missing GROQ API key"}, 500)

    rewriter = GroqRewriter.from_config(config, api_key=api_key)
    result = import_feeds(config.rss_feeds, _service_db(), rewriter,
                          delay=config.import_delay, timeout=config.timeout)
    return _json(result)


@bp.route("/scrape-and-rewrite", methods=["POST", "OPTIONS"])
def scrape_and_rewrite():
    if request.method == "OPTIONS":
        return _preflight()

    config = _config()
    try:
        payload = request.get_json(force=True, silent=True)
        if not isinstance(payload, dict) or not payload.get("urlParaScrape"):
            raise ScrapeError("URL para scrape não fornecida (urlParaScrape).")
        result = scrape_url(str(payload["urlParaScrape"]).strip(),
                            GroqRewriter.from_config(config), timeout=config.timeout)
        return _json(result)
    except Exception as e:
        logger.warning(f"scrape-and-rewrite: {e}")
        return _json({"error": str(e)}, 400)


@bp.route("/scraper", methods=["GET", "POST"])
def scraper():
    if request.method != "POST":
        return _json({"error": "Use POST com JSON { portalId, max? }"}, 405)

    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        return _json({"error": "JSON inválido."}, 400)

    config = _config()
    portal_id = str(payload.get("portalId") or "").strip()
    portal_cfg = config.get_portal(portal_id)
    if not portal_cfg:
        return _json({"error": f"portalId desconhecido: {portal_id}"}, 400)

    summary = scrape_portal(Portal.from_dict(portal_cfg), _service_db(),
                            GroqRewriter.from_config(config),
                            max_items=clamp_max(payload.get("max")),
                            timeout=config.timeout)
    return _json(summary)


# ── Main ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--config", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(message)s", datefmt="%H:%M:%S")
    app = create_app(Config(args.config))

    print(f"\n  SeligaManaux — http://{args.host}:{args.port}\n")
    app.run(host=args.host, port=args.port, debug=True)

#!/usr/bin/env python3
"""
SeligaManaux importer: feeds and portal scraping from the command line.

Imports RSS items (rewritten by the LLM) into the articles table, or
scrapes one of the configured portals into the review table. Uses the
service-role credentials from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY.

Usage:
    python run.py                        # Single pass over all feeds
    python run.py --continuous           # Keep running, re-import on schedule
    python run.py --interval 30          # Custom interval in minutes (default: 60)
    python run.py --feed URL             # Import a single feed
    python run.py --scrape g1-am         # Scrape one portal
    python run.py --scrape g1-am --max 5
"""

import argparse
import json
import logging
import signal
import sys
import time
from datetime import datetime

from seliga.config import Config
from seliga.database import create_database
from seliga.feeds import import_feeds
from seliga.rewrite import GroqRewriter
from seliga.scraper import Portal, clamp_max, scrape_portal

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

RUNNING = True

def signal_handler(sig, frame):
    global RUNNING
    logger.info("\nStopping after current pass completes...")
    RUNNING = False


def run_scrape(config: Config, db, portal_id: str, max_items) -> int:
    portal_cfg = config.get_portal(portal_id)
    if not portal_cfg:
        logger.error(f"Portal '{portal_id}' not found. Known: {', '.join(config.get_portals())}")
        return 1

    summary = scrape_portal(Portal.from_dict(portal_cfg), db, GroqRewriter.from_config(config),
                            max_items=clamp_max(max_items), timeout=config.timeout)
    for err in summary["errors"]:
        logger.warning(f"  {err}")
    logger.info(json.dumps(summary, ensure_ascii=False))
    return 0


def main():
    parser = argparse.ArgumentParser(description="SeligaManaux feed importer / portal scraper")
    parser.add_argument("--config", default=None, help="Config file path")
    parser.add_argument("--continuous", action="store_true", help="Keep running on schedule")
    parser.add_argument("--interval", type=int, default=60, help="Minutes between passes (default: 60)")
    parser.add_argument("--feed", action="append", default=None, help="Import only this feed (repeatable)")
    parser.add_argument("--scrape", default=None, metavar="PORTAL", help="Scrape a portal instead of importing feeds")
    parser.add_argument("--max", default=None, help="Max articles per portal run (1-15, default 8)")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = Config(args.config)
    try:
        db = create_database(config.supabase_url, config.supabase_service_key,
                             table=config.articles_table, scraped_table=config.scraped_table,
                             bucket=config.storage_bucket)
    except RuntimeError as e:
        logger.error(str(e))
        return 1

    if args.scrape:
        return run_scrape(config, db, args.scrape, args.max)

    api_key = config.import_groq_api_key
    if not api_key:
        logger.error("Missing GROQ API key (GROQ_API_KEY_2 or GROQ_API_KEY)")
        return 1
    rewriter = GroqRewriter.from_config(config, api_key=api_key)

    feeds = args.feed or config.rss_feeds
    logger.info(f"SeligaManaux importer — {len(feeds)} feeds configured")

    pass_num = 0
    while RUNNING:
        pass_num += 1
        start = time.time()
        ts = datetime.now().strftime("%Y-%m-%d %H:%M")
        logger.info(f"{'═' * 50}")
        logger.info(f"Pass #{pass_num} — {ts}")
        logger.info(f"{'═' * 50}")

        result = import_feeds(feeds, db, rewriter, delay=config.import_delay,
                              timeout=config.timeout)

        elapsed = time.time() - start
        logger.info(f"{'─' * 50}")
        logger.info(f"Pass complete: {result['imported']} new articles in {elapsed:.0f}s")

        if not args.continuous:
            break

        if RUNNING:
            logger.info(f"Next pass in {args.interval} minutes...\n")
            for _ in range(args.interval * 60):
                if not RUNNING:
                    break
                time.sleep(1)

    logger.info("Stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

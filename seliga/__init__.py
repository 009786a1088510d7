"""SeligaManaux news portal: Supabase-backed pages, share previews, feed import and scraping."""

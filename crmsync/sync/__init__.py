"""Sync engine: mapping store, translators, queue processing, webhook ingestion."""

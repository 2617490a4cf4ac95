"""Ingestion utilities: download the source CSVs and parse them into records."""

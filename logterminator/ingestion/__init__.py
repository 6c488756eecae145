"""Session grouping, ingestion and auto-bookmarking."""

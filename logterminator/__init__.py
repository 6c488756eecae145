"""logTerminator: HTML test-log ingestion, session grouping and bookmarking."""

__version__ = "0.1.0"

"""HTTP API for the ingestion service."""

"""Ingestion pipeline, status transitions and finalization policy."""

"""Data models for stored records, jobs and API payloads."""

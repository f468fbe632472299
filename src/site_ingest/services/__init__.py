"""Persistence, storage, job execution and domain services."""

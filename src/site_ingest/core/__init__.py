"""Core configuration, logging, errors and security."""

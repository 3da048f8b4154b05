"""Concrete adapters for the core ports (config file, SQLite, HTTP, alerts)."""

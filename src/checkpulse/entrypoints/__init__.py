"""Entrypoints - HTTP API and scheduled jobs."""

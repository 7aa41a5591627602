"""Adapters - Infrastructure implementations of core interfaces.

Adapters are organized by type:
- memory: in-process stores and a static directory, for tests and local runs
- postgres/: asyncpg-backed stores and the table layout
- directory/: external directory providers (Slack)
"""

"""Ingestion layer.

Adapters that turn store rows and change-feed payloads into normalized
location models and state-store updates.
"""

__all__: list[str] = []

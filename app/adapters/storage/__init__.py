"""Paste storage adapters.

Every backing store (in-memory, Redis, SQL) implements ``AbstractPasteStore``
independently; the lifecycle service is the only caller and stays
store-agnostic.
"""

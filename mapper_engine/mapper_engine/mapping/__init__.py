"""Mapped statements, caches and SQL types."""

"""Search and ranking service for curated awesome lists."""

__version__ = "1.0.0"

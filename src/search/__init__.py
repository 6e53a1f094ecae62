"""App-store search providers and the cached search service."""

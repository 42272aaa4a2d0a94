"""aiohttp middleware."""

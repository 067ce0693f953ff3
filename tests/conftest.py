"""Pytest configuration."""

import os

# Ensure test environment
os.environ.setdefault("EAE_DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("EAE_DEBUG", "true")
os.environ.setdefault("EAE_REDIS_URL", "")
os.environ.setdefault("EAE_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("EAE_BASE_URL", "https://short.test")

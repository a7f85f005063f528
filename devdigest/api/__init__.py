"""HTTP API for triggering refreshes and browsing sources and content."""

from devdigest.api.app import create_app

__all__ = ["create_app"]

"""HTTP API for the ad-play monitor."""

from .app import create_app

__all__ = ["create_app"]

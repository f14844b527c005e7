from __future__ import annotations

from stagevn.server.app import create_app

__all__ = ["create_app"]

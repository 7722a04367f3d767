"""
Gatehouse API Layer.
"""

from .server import create_app

__all__ = ["create_app"]

"""
HTTP control surface for the cloud sync engine.
"""

from .routes import create_cloud_sync_router

__all__ = ["create_cloud_sync_router"]

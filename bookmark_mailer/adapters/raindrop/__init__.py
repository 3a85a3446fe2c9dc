"""Raindrop.io adapter for fetching recently created bookmarks."""

from bookmark_mailer.adapters.raindrop.client import RaindropClient
from bookmark_mailer.adapters.raindrop.models import FolderQuery, RaindropPage

__all__ = ["FolderQuery", "RaindropClient", "RaindropPage"]

"""Storage service adapter for bookmark snapshot synchronization."""

from navhub.adapters.cloud_sync.client import RemoteStoreClient
from navhub.adapters.cloud_sync.models import Bookmark, SaveResult, SyncRecord

__all__ = ["Bookmark", "RemoteStoreClient", "SaveResult", "SyncRecord"]

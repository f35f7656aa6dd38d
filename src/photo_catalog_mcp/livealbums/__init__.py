"""
Live album reconciliation engine.

- metadata.py: encode/decode definitions embedded in album descriptions
- reconciler.py: one diff-and-apply pass per definition
- scheduler.py: periodic and on-demand sweeps, one at a time
- service.py: operations exposed to the tool layer
"""

from .metadata import LiveAlbumMetadata, decode, encode, is_live
from .reconciler import EmbeddedCarrier, Reconciler, StoredCarrier
from .scheduler import Scheduler, SchedulerState
from .service import LiveAlbumService, get_live_album_service, set_live_album_service

__all__ = [
    "EmbeddedCarrier",
    "LiveAlbumMetadata",
    "LiveAlbumService",
    "Reconciler",
    "Scheduler",
    "SchedulerState",
    "StoredCarrier",
    "decode",
    "encode",
    "get_live_album_service",
    "is_live",
    "set_live_album_service",
]

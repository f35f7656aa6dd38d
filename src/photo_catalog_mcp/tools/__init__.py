"""
MCP Tools for the Photo Catalog Server.

Each tool is a dictionary with metadata and an async handler taking the raw
arguments dict. Handlers validate input with Pydantic, call the live album
service, and always return an MCP result (``isError`` on failure) instead of
raising.
"""

from .live_albums import (
    convert_to_live_album,
    create_live_album,
    get_live_album_status,
    list_live_albums,
    set_live_album_enabled,
    update_live_album,
)
from .scheduler import (
    live_album_scheduler_status,
    run_live_album_sweep,
    start_live_album_scheduler,
    stop_live_album_scheduler,
)
from .smart_albums import (
    define_smart_album,
    delete_smart_album,
    list_smart_albums,
    refresh_smart_album,
    set_smart_album_enabled,
)

# Single list used by the server for registration
all_tools = [
    define_smart_album,
    refresh_smart_album,
    list_smart_albums,
    set_smart_album_enabled,
    delete_smart_album,
    create_live_album,
    convert_to_live_album,
    update_live_album,
    list_live_albums,
    set_live_album_enabled,
    get_live_album_status,
    live_album_scheduler_status,
    start_live_album_scheduler,
    stop_live_album_scheduler,
    run_live_album_sweep,
]

__all__ = ["all_tools"]

from .storage import (
    LocalMediaStorage,
    MediaStorage,
    StoredMedia,
    SupabaseMediaStorage,
    build_media_storage,
    safe_name,
)

__all__ = [
    "LocalMediaStorage",
    "MediaStorage",
    "StoredMedia",
    "SupabaseMediaStorage",
    "build_media_storage",
    "safe_name",
]

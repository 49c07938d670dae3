from .connection import create_engine, create_session_maker, init_schema, normalize_database_url
from .remote_sync import InertRemoteSync, RemoteSyncAdapter, SqlRemoteSync, build_remote_sync

__all__ = [
    "create_engine",
    "create_session_maker",
    "init_schema",
    "normalize_database_url",
    "InertRemoteSync",
    "RemoteSyncAdapter",
    "SqlRemoteSync",
    "build_remote_sync",
]

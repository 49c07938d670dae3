from .local_store import JsonBlobStorage, LocalStore

__all__ = ["JsonBlobStorage", "LocalStore"]

"""API v1 routers"""
from . import (
    devices,
    editor,
    extraction,
    reports,
)

__all__ = [
    "devices",
    "editor",
    "extraction",
    "reports",
]

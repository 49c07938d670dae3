"""On-device persistence: one JSON array per fixed storage key"""
import asyncio
import os
from pathlib import Path
from typing import Generic, List, Optional, Type, TypeVar
from uuid import uuid4

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


class JsonBlobStorage:
    """Key/value storage where every value is a whole JSON document on disk"""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, content: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)


class LocalStore(Generic[T]):
    """
    Full-replace store for a list of records

    load() never fails: a missing or unreadable blob is "no data".
    save() overwrites the previous blob unconditionally.
    """

    def __init__(self, storage: JsonBlobStorage, key: str, item_type: Type[T]):
        self.storage = storage
        self.key = key
        self._adapter = TypeAdapter(List[item_type])
        self._write_lock = asyncio.Lock()

    def exists(self) -> bool:
        return self.storage.path_for(self.key).exists()

    def load(self) -> List[T]:
        try:
            raw = self.storage.read(self.key)
        except OSError as e:
            logger.warning("local_store_read_failed", key=self.key, error=str(e))
            return []

        if raw is None:
            return []

        try:
            return self._adapter.validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning("local_store_parse_failed", key=self.key, error=str(e))
            return []

    def save(self, items: List[T]) -> None:
        self.storage.write(self.key, self._adapter.dump_json(items).decode("utf-8"))
        logger.debug("local_store_saved", key=self.key, count=len(items))

    async def asave(self, items: List[T]) -> None:
        """save() with the file write off the event loop; writes land in call order"""
        content = self._adapter.dump_json(items).decode("utf-8")
        async with self._write_lock:
            await asyncio.to_thread(self.storage.write, self.key, content)
        logger.debug("local_store_saved", key=self.key, count=len(items))

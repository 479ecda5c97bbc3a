"""
EntityStore Persistence Layer - File Backend

Stores one JSON document per record inside a directory. The file name is the
record's composite key value, each part percent-escaped (underscores included)
and joined with ``"__"``, so distinct keys never share a file.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from ..core.fields import build_record, record_to_dict
from ..core.keys import KeySelector, stringify_key_part
from .base import EntityStore, T

logger = logging.getLogger(__name__)

FILE_KEY_SEPARATOR = "__"


class FileEntityStore(EntityStore[T]):
    """
    File-based entity store using JSON serialization.

    A single asyncio lock per store handle serializes every file operation,
    including operations on different records. Writes go to a temporary file
    that replaces the target in one step, so a cancelled or failed write
    never leaves a partial record behind.

    Files that cannot be deserialized are skipped by ``list()`` with a
    warning.
    """

    def __init__(
        self,
        record_type: type,
        directory: Union[str, Path],
        key_selector: Optional[KeySelector] = None,
        indent: Optional[int] = 2,
        extension: str = ".json",
        fallback_key_names: Optional[Iterable[str]] = None,
        strict_keys: bool = False,
    ):
        super().__init__(record_type, fallback_key_names, strict_keys)
        if directory is None:
            raise ValueError("directory cannot be None")
        self.directory = Path(directory)
        self.indent = indent
        self.extension = extension if extension.startswith(".") else f".{extension}"
        self._custom_key_selector = key_selector
        self._lock = asyncio.Lock()
        self.directory.mkdir(parents=True, exist_ok=True)

    def key_of(self, record: T) -> Tuple[str, ...]:
        if self._custom_key_selector is not None:
            return tuple(self._custom_key_selector(record))
        return super().key_of(record)

    def _resolve_keys(self, keys: Sequence[Any]) -> Tuple[str, ...]:
        """With a custom key selector, files are addressed by the selector's parts as given"""
        if self._custom_key_selector is None:
            return super()._resolve_keys(keys)
        self._require_key_parts(keys)
        return tuple(stringify_key_part(key) for key in keys)

    def _file_path(self, parts: Tuple[str, ...]) -> Path:
        name = FILE_KEY_SEPARATOR.join(
            quote(part, safe="").replace("_", "%5F") for part in parts
        )
        return self.directory / f"{name}{self.extension}"

    def _serialize(self, record: T) -> str:
        return json.dumps(record_to_dict(record, mode="json"), indent=self.indent)

    def _deserialize(self, text: str) -> T:
        return build_record(self.record_type, json.loads(text))

    @staticmethod
    def _write_file(path: Path, content: str) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)

    @staticmethod
    def _delete_file(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    async def _write(self, parts: Tuple[str, ...], record: T) -> None:
        path = self._file_path(parts)
        content = self._serialize(record)
        async with self._lock:
            await asyncio.to_thread(self._write_file, path, content)
        logger.debug(f"Wrote {self.record_type.__name__} record to {path}")

    async def save(self, key: Any, record: T) -> None:
        if record is None:
            raise ValueError("record cannot be None")
        await self._write(self._resolve_save_key(key), record)

    async def insert(self, records: Iterable[T]) -> None:
        """Write each record under its own key; earlier writes are kept if a later one fails"""
        if records is None:
            raise ValueError("records cannot be None")
        for record in records:
            await self._write(self.key_of(record), record)

    async def load(self, *keys: Any) -> Optional[T]:
        path = self._file_path(self._resolve_keys(keys))
        async with self._lock:
            if not path.exists():
                return None
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return self._deserialize(text)

    async def delete(self, *keys: Any) -> bool:
        path = self._file_path(self._resolve_keys(keys))
        async with self._lock:
            deleted = await asyncio.to_thread(self._delete_file, path)
        if deleted:
            logger.debug(f"Deleted {self.record_type.__name__} record file {path}")
        return deleted

    async def list(self) -> List[T]:
        records: List[T] = []
        async with self._lock:
            paths = sorted(self.directory.glob(f"*{self.extension}"))
            for path in paths:
                try:
                    text = await asyncio.to_thread(path.read_text, encoding="utf-8")
                    records.append(self._deserialize(text))
                except (ValueError, TypeError) as e:
                    logger.warning(f"Skipping unreadable {self.record_type.__name__} file {path}: {e}")
        return records


__all__ = ["FileEntityStore", "FILE_KEY_SEPARATOR"]

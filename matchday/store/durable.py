"""Crash-surviving whole-value store: one string per namespace, JSON file on disk."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from matchday.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)


@runtime_checkable
class DurableStore(Protocol):
    """Whole-value reads and writes only. No partial updates, no transactions."""

    async def get(self, namespace: str) -> str | None: ...

    async def set(self, namespace: str, value: str) -> None: ...


class JsonFileStore:
    """JSON file-backed namespace store. Atomic writes via temp file + replace."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._temp_path = path.with_name(path.name + ".tmp")

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise CollaboratorUnavailable("durable store", e) from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            # Refuse to read or rewrite: a write would drop every other namespace
            logger.error("durable store %s is not valid JSON", self._path)
            raise CollaboratorUnavailable("durable store", e) from e
        return data if isinstance(data, dict) else {}

    def _save(self, store: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._temp_path.write_text(
                json.dumps(store, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            self._temp_path.replace(self._path)
        except OSError as e:
            raise CollaboratorUnavailable("durable store", e) from e

    async def get(self, namespace: str) -> str | None:
        store = await asyncio.to_thread(self._load)
        value = store.get(namespace)
        return value if isinstance(value, str) else None

    async def set(self, namespace: str, value: str | None) -> None:
        """Replace the value of namespace. None deletes it."""

        def _write() -> None:
            store = self._load()
            if value is None:
                store.pop(namespace, None)
            else:
                store[namespace] = value
            self._save(store)

        await asyncio.to_thread(_write)

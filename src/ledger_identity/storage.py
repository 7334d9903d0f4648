"""Namespaced key/value state used by the alias registry, vault and network.

Each namespace of :class:`FileStateStore` is a single JSON document
(``<namespace>.json``) holding a ``{"data": {...}}`` mapping. Writers take an
exclusive advisory lock on a sibling ``.lock`` file, re-read the document,
apply the change and atomically replace the file, so a concurrent writer in
another process is serialised rather than silently overwritten. Readers do
not lock; they always observe a complete document thanks to ``os.replace``.
"""

from __future__ import annotations

import builtins
import copy
import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Callable

import portalocker

from .errors import StorageError

__all__ = ["FileStateStore", "MemoryStateStore", "StateStore"]

LOGGER = logging.getLogger(__name__)

_NAMESPACE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class StateStore(ABC):
    """Abstract namespaced key/value store holding JSON-compatible values."""

    @abstractmethod
    def get(self, namespace: str, key: str) -> object | None:
        """Return the value stored under ``key`` or ``None``."""

    @abstractmethod
    def set(self, namespace: str, key: str, value: object) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def add(self, namespace: str, key: str, value: object) -> bool:
        """Store ``value`` only if ``key`` is absent.

        The check and the write happen as one step, so of two racing callers
        exactly one gets ``True``. Returns ``False`` and leaves the existing
        value alone when ``key`` is already taken.
        """

    @abstractmethod
    def delete(self, namespace: str, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""

    @abstractmethod
    def keys(self, namespace: str) -> builtins.list[str]:
        """Return every key in ``namespace``."""

    @abstractmethod
    def clear(self, namespace: str) -> None:
        """Remove every key in ``namespace``."""

    def has(self, namespace: str, key: str) -> bool:
        """Return ``True`` when ``key`` is present in ``namespace``."""

        return key in self.keys(namespace)

    def list(self, namespace: str) -> builtins.list[object]:
        """Return every stored value, including ``None`` or malformed ones."""

        return [self.get(namespace, key) for key in self.keys(namespace)]


class MemoryStateStore(StateStore):
    """Process-local store, used for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, object]] = {}

    def get(self, namespace: str, key: str) -> object | None:
        return copy.deepcopy(self._data.get(namespace, {}).get(key))

    def set(self, namespace: str, key: str, value: object) -> None:
        self._data.setdefault(namespace, {})[key] = copy.deepcopy(value)

    def add(self, namespace: str, key: str, value: object) -> bool:
        data = self._data.setdefault(namespace, {})
        if key in data:
            return False
        data[key] = copy.deepcopy(value)
        return True

    def delete(self, namespace: str, key: str) -> None:
        self._data.get(namespace, {}).pop(key, None)

    def has(self, namespace: str, key: str) -> bool:
        return key in self._data.get(namespace, {})

    def keys(self, namespace: str) -> builtins.list[str]:
        return list(self._data.get(namespace, {}))

    def list(self, namespace: str) -> builtins.list[object]:
        return [copy.deepcopy(value) for value in self._data.get(namespace, {}).values()]

    def clear(self, namespace: str) -> None:
        self._data.pop(namespace, None)


def _fsync_directory(path: Path) -> None:
    """Durably flush directory metadata when supported by the platform."""
    if os.name == "nt":  # pragma: no cover - Windows does not need dir fsync
        return
    flags = getattr(os, "O_DIRECTORY", None)
    if flags is None:  # pragma: no cover - platform without O_DIRECTORY
        return
    fd = os.open(str(path), flags)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class FileStateStore(StateStore):
    """JSON-file backed store with one document per namespace.

    Args:
        directory: Directory that holds the namespace documents. Created on
            first write.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def get(self, namespace: str, key: str) -> object | None:
        return self._read(namespace).get(key)

    def set(self, namespace: str, key: str, value: object) -> None:
        def _apply(data: dict[str, object]) -> None:
            data[key] = value

        self._update(namespace, _apply)

    def add(self, namespace: str, key: str, value: object) -> bool:
        added = False

        def _apply(data: dict[str, object]) -> None:
            nonlocal added
            if key not in data:
                data[key] = value
                added = True

        self._update(namespace, _apply)
        return added

    def delete(self, namespace: str, key: str) -> None:
        def _apply(data: dict[str, object]) -> None:
            data.pop(key, None)

        self._update(namespace, _apply)

    def has(self, namespace: str, key: str) -> bool:
        return key in self._read(namespace)

    def keys(self, namespace: str) -> builtins.list[str]:
        return list(self._read(namespace))

    def list(self, namespace: str) -> builtins.list[object]:
        return list(self._read(namespace).values())

    def clear(self, namespace: str) -> None:
        self._update(namespace, lambda data: data.clear())

    def _path(self, namespace: str) -> Path:
        if not _NAMESPACE_PATTERN.fullmatch(namespace):
            raise StorageError(
                f"Invalid state namespace: {namespace!r}",
                context={"namespace": namespace},
            )
        return self.directory / f"{namespace}.json"

    def _load(self, path: Path) -> dict[str, object]:
        """Parse a namespace document, raising :class:`StorageError` if corrupt."""

        if not path.exists():
            return {}
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageError(
                f"State file {path} is unreadable",
                context={"path": str(path)},
            ) from exc
        data = document.get("data") if isinstance(document, dict) else None
        if not isinstance(data, dict):
            raise StorageError(
                f"State file {path} has no 'data' mapping",
                context={"path": str(path)},
            )
        return {str(key): value for key, value in data.items()}

    def _read(self, namespace: str) -> dict[str, object]:
        path = self._path(namespace)
        try:
            return self._load(path)
        except StorageError as exc:
            LOGGER.warning(
                "Treating unreadable state namespace as empty",
                extra={"namespace": namespace, "error": str(exc.__cause__ or exc)},
            )
            return {}

    @contextmanager
    def _locked(self, path: Path) -> Iterator[IO[bytes]]:
        lock_path = path.with_suffix(path.suffix + ".lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        with lock_path.open("a+b") as lock_fp:
            portalocker.lock(lock_fp, portalocker.LOCK_EX)
            try:
                yield lock_fp
            finally:
                portalocker.unlock(lock_fp)

    def _update(
        self, namespace: str, mutate: Callable[[dict[str, object]], None]
    ) -> None:
        """Apply ``mutate`` to the namespace document under an exclusive lock."""

        path = self._path(namespace)
        with self._locked(path):
            data = self._load(path)
            mutate(data)
            self._write_atomic(path, {"data": data})

    def _write_atomic(self, path: Path, document: dict[str, object]) -> None:
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=str(path.parent), delete=False
            ) as tmp:
                temp_path = Path(tmp.name)
                json.dump(document, tmp, indent=2, sort_keys=True)
                tmp.flush()
                try:
                    os.fsync(tmp.fileno())
                except OSError as exc:
                    LOGGER.warning(
                        "Failed to fsync state temp file",
                        extra={"error": str(exc)},
                    )
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to write state file {path}",
                context={"path": str(path)},
            ) from exc

        try:
            _fsync_directory(path.parent)
        except OSError as exc:
            LOGGER.warning(
                "Failed to fsync state directory",
                extra={"error": str(exc)},
            )

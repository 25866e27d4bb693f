"""State store interface and in-process implementations.

The store is the only synchronization point between concurrent
invocations.  Every component receives a :class:`StateStore` instead of
reaching for a process-wide handle.
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import json
import logging
from collections.abc import Awaitable
from typing import Any, Protocol, TypeVar

from fishfeeder.exceptions import StoreTimeoutError

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class StateStore(Protocol):
    """Get/set values at ``/``-separated paths with optimistic concurrency."""

    async def get(self, path: str) -> Any:
        ...

    async def set(self, path: str, value: Any) -> None:
        ...

    async def get_with_etag(self, path: str) -> tuple[Any, str]:
        ...

    async def set_if_match(self, path: str, value: Any, etag: str) -> bool:
        """Write *value* only if *path* still carries *etag*.

        Returns ``False`` when another writer got there first.
        """
        ...


def _split(path: str) -> list[str]:
    return [part for part in path.strip("/").split("/") if part]


def compute_etag(value: Any) -> str:
    """Content hash of a JSON value, stable across key order."""
    encoded = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()


class MemoryStateStore:
    """Nested-dict store with the same path semantics as the remote database.

    Writing ``None`` deletes the key.  Values are deep-copied on the way in
    and out so callers never share mutable state with the store.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._root: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = asyncio.Lock()
        self.writes: list[tuple[str, Any]] = []

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._root)

    def _read(self, path: str) -> Any:
        node: Any = self._root
        for part in _split(path):
            if isinstance(node, dict):
                node = node.get(part)
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return None
            if node is None:
                return None
        return copy.deepcopy(node)

    def _write(self, path: str, value: Any) -> None:
        parts = _split(path)
        if not parts:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if isinstance(child, list):
                child = {str(i): v for i, v in enumerate(child) if v is not None}
                node[part] = child
            elif not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = copy.deepcopy(value)
        self.writes.append((path, copy.deepcopy(value)))

    async def get(self, path: str) -> Any:
        return self._read(path)

    async def set(self, path: str, value: Any) -> None:
        async with self._lock:
            self._write(path, value)

    async def get_with_etag(self, path: str) -> tuple[Any, str]:
        value = self._read(path)
        return value, compute_etag(value)

    async def set_if_match(self, path: str, value: Any, etag: str) -> bool:
        async with self._lock:
            if compute_etag(self._read(path)) != etag:
                _logger.debug("Conditional write to %s rejected: etag mismatch", path)
                return False
            self._write(path, value)
            return True


class BoundedStore:
    """Wrap a store so every call fails fast after a timeout.

    Timeouts surface as :class:`StoreTimeoutError`; other store failures
    propagate unchanged.
    """

    def __init__(self, inner: StateStore, *, read_timeout: float, write_timeout: float) -> None:
        self._inner = inner
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout

    @property
    def inner(self) -> StateStore:
        return self._inner

    async def _bounded(self, awaitable: Awaitable[_T], *, path: str, operation: str, timeout: float) -> _T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except TimeoutError as exc:
            _logger.warning("Store %s of %s timed out after %.1fs", operation, path, timeout)
            raise StoreTimeoutError(
                f"Store {operation} of {path} timed out after {timeout:.1f}s",
                path=path,
                operation=operation,
            ) from exc

    async def get(self, path: str) -> Any:
        return await self._bounded(self._inner.get(path), path=path, operation="read", timeout=self._read_timeout)

    async def set(self, path: str, value: Any) -> None:
        await self._bounded(
            self._inner.set(path, value),
            path=path,
            operation="write",
            timeout=self._write_timeout,
        )

    async def get_with_etag(self, path: str) -> tuple[Any, str]:
        return await self._bounded(
            self._inner.get_with_etag(path),
            path=path,
            operation="read",
            timeout=self._read_timeout,
        )

    async def set_if_match(self, path: str, value: Any, etag: str) -> bool:
        return await self._bounded(
            self._inner.set_if_match(path, value, etag),
            path=path,
            operation="write",
            timeout=self._write_timeout,
        )


__all__ = [
    "BoundedStore",
    "MemoryStateStore",
    "StateStore",
    "compute_etag",
]

"""Per-file result cache validated by modification time and size."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Generic, Optional, TypeVar

from ..utils import Signature, file_signature, resolve_path

_LOGGER = logging.getLogger("pdf_packager.pipeline")

T = TypeVar("T")


@dataclass
class _CacheEntry(Generic[T]):
    signature: Signature
    future: "Future[T]"


class SignatureCache(Generic[T]):
    """Cache keyed by absolute path and guarded by the file signature.

    At most one computation runs per (path, signature): concurrent callers
    wait on the same future. When the signature of a path changes, the stale
    result is handed to ``dispose`` and a fresh computation starts. Failed
    computations are not kept.
    """

    def __init__(self, name: str, dispose: Optional[Callable[[T], None]] = None) -> None:
        self.name = name
        self._dispose = dispose
        self._lock = threading.Lock()
        self._entries: Dict[str, _CacheEntry[T]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_or_compute(self, path: str | Path, compute: Callable[[], T]) -> T:
        key = str(resolve_path(path))
        signature = file_signature(key)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.signature == signature:
                _LOGGER.debug("%s cache hit for %s", self.name, key)
                future = entry.future
                owner = False
            else:
                if entry is not None:
                    _LOGGER.debug("%s cache entry for %s is stale", self.name, key)
                    self._release(entry)
                future = Future()
                self._entries[key] = _CacheEntry(signature, future)
                owner = True

        if not owner:
            return future.result()

        try:
            value = compute()
        except BaseException as exc:
            with self._lock:
                current = self._entries.get(key)
                if current is not None and current.future is future:
                    del self._entries[key]
            future.set_exception(exc)
            raise

        future.set_result(value)
        return value

    def dispose(self) -> None:
        """Forget every entry and dispose of the results."""

        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            self._release(entry)

    def _release(self, entry: _CacheEntry[T]) -> None:
        if self._dispose is None:
            return
        dispose = self._dispose

        def _on_done(future: "Future[T]") -> None:
            if future.cancelled() or future.exception() is not None:
                return
            dispose(future.result())

        entry.future.add_done_callback(_on_done)

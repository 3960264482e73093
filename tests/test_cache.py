from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import List

import pytest

from pdf_packager.pipeline import SignatureCache


@pytest.fixture()
def source(tmp_path: Path) -> Path:
    path = tmp_path / "doc.pdf"
    path.write_bytes(b"%PDF-1.4 original")
    return path


def test_second_lookup_is_a_cache_hit(source: Path) -> None:
    cache: SignatureCache[str] = SignatureCache("test")
    calls: List[int] = []

    def compute() -> str:
        calls.append(1)
        return "value"

    assert cache.get_or_compute(source, compute) == "value"
    assert cache.get_or_compute(str(source), compute) == "value"
    assert len(calls) == 1
    assert len(cache) == 1


def test_signature_change_recomputes_and_disposes_stale_value(source: Path) -> None:
    disposed: List[str] = []
    cache: SignatureCache[str] = SignatureCache("test", dispose=disposed.append)

    cache.get_or_compute(source, lambda: "first")
    source.write_bytes(b"%PDF-1.4 changed and longer")
    value = cache.get_or_compute(source, lambda: "second")

    assert value == "second"
    assert disposed == ["first"]


def test_mtime_change_alone_invalidates(source: Path) -> None:
    cache: SignatureCache[int] = SignatureCache("test")
    cache.get_or_compute(source, lambda: 1)

    stat = source.stat()
    os.utime(source, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    assert cache.get_or_compute(source, lambda: 2) == 2


def test_failed_computation_is_not_cached(source: Path) -> None:
    cache: SignatureCache[str] = SignatureCache("test")

    def fail() -> str:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_compute(source, fail)

    assert len(cache) == 0
    assert cache.get_or_compute(source, lambda: "ok") == "ok"


def test_concurrent_callers_share_one_computation(source: Path) -> None:
    cache: SignatureCache[str] = SignatureCache("test")
    started = threading.Event()
    release = threading.Event()
    calls: List[int] = []
    results: List[str] = []

    def slow() -> str:
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return "shared"

    def worker() -> None:
        results.append(cache.get_or_compute(source, slow))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    threads[0].start()
    started.wait(timeout=5)
    for thread in threads[1:]:
        thread.start()
    time.sleep(0.05)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert calls == [1]
    assert results == ["shared"] * 4


def test_dispose_releases_every_entry(tmp_path: Path) -> None:
    disposed: List[str] = []
    cache: SignatureCache[str] = SignatureCache("test", dispose=disposed.append)
    for name in ("a", "b"):
        path = tmp_path / f"{name}.pdf"
        path.write_bytes(name.encode())
        cache.get_or_compute(path, lambda name=name: name)

    cache.dispose()

    assert sorted(disposed) == ["a", "b"]
    assert len(cache) == 0

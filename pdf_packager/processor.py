"""Map recipient packages onto the per-file pipeline."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .context import ProcessingContext
from .exceptions import PDFPackagerException, PipelineCancelledError
from .pipeline import PdfProcessingPipeline, PipelineLogger
from .pipeline.base import emit
from .text import NameSanitizer
from .types import InventoryEntry, PdfPackage, PipelineProgress, PreparationStats
from .utils import PathLike, raise_if_cancelled

_LOGGER = logging.getLogger("pdf_packager.processor")

AfterFileProcessed = Callable[[InventoryEntry, str, bool, Optional[str]], None]
ProgressCallback = Callable[[PipelineProgress], None]

COLLECTION_FALLBACK = "collection"


@dataclass
class _FileTask:
    entry: InventoryEntry
    recipient: str
    context: ProcessingContext


_Outcome = Tuple[Optional[ProcessingContext], Optional[Exception]]


def _sort_key(value: str) -> Tuple[str, str]:
    return value.lower(), value


class PdfPackageProcessor:
    """Run every requested (recipient, file) pair through the pipeline.

    Files are processed in submission order. With ``max_workers`` above one
    the pipeline runs on a thread pool, but results, callbacks and progress
    notifications are still applied in submission order.
    """

    def __init__(self, pipeline: PdfProcessingPipeline, max_workers: int = 1) -> None:
        self.pipeline = pipeline
        self.max_workers = max(1, max_workers)

    def collect_pdf_files(
        self,
        source_dir: PathLike,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[InventoryEntry]:
        """Recursively list PDF files under *source_dir*, sorted case-insensitively."""

        root = Path(source_dir)
        entries: List[InventoryEntry] = []

        for current, directories, files in os.walk(root):
            raise_if_cancelled(cancel_event)
            directories.sort()
            for name in files:
                if not name.lower().endswith(".pdf"):
                    continue
                full_path = Path(current) / name
                if not full_path.is_file():
                    continue
                relative = full_path.relative_to(root).as_posix()
                relative_dir = full_path.parent.relative_to(root).as_posix()
                entries.append(
                    InventoryEntry(
                        path=str(full_path),
                        relative=relative,
                        relative_dir="" if relative_dir == "." else relative_dir,
                        basename=name,
                    )
                )

        entries.sort(key=lambda entry: _sort_key(entry.relative))
        _LOGGER.debug("Found %d PDF files under %s", len(entries), root)
        return entries

    def prepare(
        self,
        packages: Sequence[PdfPackage],
        source_dir: PathLike,
        output_dir: PathLike,
        fallback_name: str,
        collection_name: str = "",
        logger: Optional[PipelineLogger] = None,
        inventory: Optional[Sequence[InventoryEntry]] = None,
        after_file_processed: Optional[AfterFileProcessed] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PreparationStats:
        entries = list(inventory) if inventory is not None else self.collect_pdf_files(source_dir, cancel_event)
        lookup: Dict[str, InventoryEntry] = {entry.relative.lower(): entry for entry in entries}

        collection = collection_name.strip()
        collection_folder = NameSanitizer.sanitize(collection, COLLECTION_FALLBACK) if collection else None

        stats = PreparationStats(requested_recipients=len(packages))
        missing = set()
        tasks: List[_FileTask] = []
        use_default_logging = after_file_processed is None

        for package in packages:
            name = package.name.strip()
            if not name:
                continue

            recipient_dir = Path(output_dir) / NameSanitizer.sanitize(name, fallback_name)
            base_dir = recipient_dir / collection_folder if collection_folder else recipient_dir
            base_dir.mkdir(parents=True, exist_ok=True)

            for reference in package.files:
                relative = reference.strip()
                if not relative:
                    continue

                entry = lookup.get(relative.lower())
                if entry is None:
                    emit(logger, f"Warning: Source file {relative} not found. Skipping for {name}.")
                    missing.add(relative)
                    continue

                destination = base_dir / entry.relative_dir if entry.relative_dir else base_dir
                context = ProcessingContext(
                    working_path=Path(entry.path),
                    relative_path=entry.relative,
                    recipient=name,
                    target_directory=destination,
                    basename=entry.basename,
                    use_default_logging=use_default_logging,
                )
                tasks.append(_FileTask(entry=entry, recipient=name, context=context))

        stats.missing_files = sorted(missing, key=_sort_key)

        total = len(tasks)
        _notify(progress, PipelineProgress(total=total, completed=0))
        if not tasks:
            return stats

        processed_by_recipient: Dict[str, int] = {}
        failed = set()
        completed = 0

        try:
            for task, (result, error) in self._execute(tasks, logger, cancel_event):
                if error is not None:
                    emit(logger, f"Error: {task.entry.relative} could not be prepared for {task.recipient}: {error}")
                    failed.add(task.entry.relative)
                else:
                    stats.processed_files += 1
                    processed_by_recipient[task.recipient] = processed_by_recipient.get(task.recipient, 0) + 1
                    if after_file_processed is not None:
                        after_file_processed(task.entry, task.recipient, True, result.password if result else None)

                completed += 1
                _notify(
                    progress,
                    PipelineProgress(
                        total=total,
                        completed=completed,
                        current_file=task.entry.relative,
                        current_recipient=task.recipient,
                    ),
                )
        finally:
            self.pipeline.dispose_shared_resources()

        stats.processed_recipients = sum(1 for count in processed_by_recipient.values() if count > 0)
        stats.failed_files = sorted(failed, key=_sort_key)
        return stats

    def _execute(
        self,
        tasks: Sequence[_FileTask],
        logger: Optional[PipelineLogger],
        cancel_event: Optional[threading.Event],
    ) -> Iterator[Tuple[_FileTask, _Outcome]]:
        if self.max_workers == 1:
            for task in tasks:
                yield task, self._run_task(task, logger, cancel_event)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._run_task, task, logger, cancel_event) for task in tasks]
            try:
                for task, future in zip(tasks, futures):
                    yield task, future.result()
            finally:
                for future in futures:
                    future.cancel()

    def _run_task(
        self,
        task: _FileTask,
        logger: Optional[PipelineLogger],
        cancel_event: Optional[threading.Event],
    ) -> _Outcome:
        try:
            task.context.target_directory.mkdir(parents=True, exist_ok=True)
            return self.pipeline.process(task.context, logger, cancel_event), None
        except PipelineCancelledError:
            raise
        except (PDFPackagerException, OSError) as error:
            _LOGGER.debug("Processing %s for %s failed", task.entry.relative, task.recipient, exc_info=True)
            return None, error


def _notify(progress: Optional[ProgressCallback], update: PipelineProgress) -> None:
    if progress is not None:
        progress(update)

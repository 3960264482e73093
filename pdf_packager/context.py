"""Per-file state handed from one pipeline stage to the next."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


@dataclass(frozen=True)
class ProcessingContext:
    """Immutable state of one (recipient, file) pass through the pipeline.

    ``working_path`` points at the current version of the document. Stages
    never mutate a context; they return a new one through the ``with_*``
    helpers. Paths recorded in ``temporary_paths`` are reclaimed by the
    pipeline once the run ends.
    """

    working_path: Path
    relative_path: str
    recipient: str
    target_directory: Path
    basename: str
    temporary_paths: Tuple[Path, ...] = ()
    password: Optional[str] = None
    use_default_logging: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "working_path", Path(self.working_path))
        object.__setattr__(self, "target_directory", Path(self.target_directory))
        object.__setattr__(self, "temporary_paths", tuple(Path(path) for path in self.temporary_paths))

    @property
    def target_path(self) -> Path:
        return self.target_directory / self.basename

    def with_working_path(self, path: str | Path, temporary: bool = True) -> "ProcessingContext":
        path = Path(path)
        temporary_paths = self.temporary_paths
        if temporary and path not in temporary_paths:
            temporary_paths = temporary_paths + (path,)
        return dataclasses.replace(self, working_path=path, temporary_paths=temporary_paths)

    def with_password(self, password: str) -> "ProcessingContext":
        return dataclasses.replace(self, password=password)

    def with_default_logging(self, enabled: bool) -> "ProcessingContext":
        return dataclasses.replace(self, use_default_logging=enabled)

"""Document source walking local directory trees."""

from __future__ import annotations

import asyncio
import logging
import socket
from collections import deque
from collections.abc import AsyncIterator
from pathlib import Path

from ragline.documents.types import get_document_type
from ragline.resilience import is_cancelled
from ragline.sources.base import DocumentInfo, DocumentSource
from ragline.sources.specs import PathProvider

logger = logging.getLogger(__name__)


def _list_directory(directory: Path) -> tuple[list[Path], list[Path]]:
    directories: list[Path] = []
    files: list[Path] = []
    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            directories.append(entry)
        elif entry.is_file():
            files.append(entry)
    return directories, files


class FileSystemSource(DocumentSource):
    """Breadth-first walk over the roots listed in ``FileSystem.json``."""

    description = "File System"
    config_file = "FileSystem.json"

    def __init__(self, path_provider: PathProvider, *, prefix: str | None = None) -> None:
        self._path_provider = path_provider
        self._prefix = prefix or f"{socket.gethostname()}:FileSystem"

    @property
    def prefix(self) -> str:
        return self._prefix

    async def get_documents(self, cancel: asyncio.Event | None = None) -> AsyncIterator[DocumentInfo]:
        for spec in self._path_provider.get_paths(self.config_file):
            if not spec.path:
                continue

            root = Path(spec.path).expanduser().resolve()
            if not root.is_dir():
                logger.warning("Configured path %s is not a directory; skipping", root)
                continue

            directories: deque[Path] = deque([root])
            while directories and not is_cancelled(cancel):
                current = directories.popleft()
                try:
                    subdirectories, files = await asyncio.to_thread(_list_directory, current)
                except OSError:
                    logger.warning("Unable to list directory %s", current, exc_info=True)
                    continue

                for directory in subdirectories:
                    if not self._path_provider.is_path_excluded(directory.relative_to(root)):
                        directories.append(directory)

                for file_path in files:
                    try:
                        stream = file_path.open("rb")
                    except OSError:
                        logger.warning("Unable to open file %s", file_path, exc_info=True)
                        continue

                    yield DocumentInfo(
                        source_prefix=self.prefix,
                        content=stream,
                        document_type=get_document_type(file_path.name),
                        path=str(file_path),
                        source_description=spec.description,
                    )

                    if is_cancelled(cancel):
                        break

            if is_cancelled(cancel):
                break

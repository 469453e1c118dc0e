"""Per-source location specs and the JSON files they are read from.

Each source reads a JSON array from ``<config_dir>/<SourceName>.json``::

    [{"description": "Team docs", "path": "/srv/docs"}]

Web sources use ``"url"`` instead of ``"path"``.  A missing file is
created with ``[]`` so users have something to edit.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePath
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter

from ragline.config import settings

logger = logging.getLogger(__name__)


class PathSpec(BaseModel):
    description: str = ""
    path: str | None = None


class WebSpec(BaseModel):
    description: str = ""
    url: str | None = None


SpecT = TypeVar("SpecT", PathSpec, WebSpec)


class PathProvider:
    """Reads and writes spec files and decides which directories to skip.

    Parameters
    ----------
    config_dir:
        Directory holding the spec files.
    excluded_paths:
        Directory names that are never descended into.
    """

    def __init__(
        self,
        config_dir: str | Path = settings.config_dir,
        excluded_paths: list[str] | None = None,
    ) -> None:
        self.config_dir = Path(config_dir)
        self.excluded_paths = set(excluded_paths if excluded_paths is not None else settings.excluded_paths)

    def _resolve(self, file_name: str) -> Path:
        if not file_name or not file_name.strip():
            raise ValueError("file_name is required.")
        return self.config_dir / file_name

    def get_specs(self, file_name: str, spec_type: type[SpecT]) -> list[SpecT]:
        """Load the specs in *file_name*, creating the file if it is missing."""
        config_path = self._resolve(file_name)
        if not config_path.exists():
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text("[]", encoding="utf-8")
            logger.info("Created empty source config %s", config_path)

        adapter = TypeAdapter(list[spec_type])
        return adapter.validate_json(config_path.read_bytes())

    def get_paths(self, file_name: str) -> list[PathSpec]:
        return self.get_specs(file_name, PathSpec)

    def get_web_specs(self, file_name: str) -> list[WebSpec]:
        return self.get_specs(file_name, WebSpec)

    def write_specs(self, specs: list[PathSpec] | list[WebSpec], file_name: str) -> None:
        """Replace *file_name* with *specs* (indented JSON)."""
        config_path = self._resolve(file_name)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        adapter = TypeAdapter(list[type(specs[0])]) if specs else TypeAdapter(list[PathSpec])
        config_path.write_bytes(adapter.dump_json(specs, indent=2, exclude_none=True))

    def is_path_excluded(self, directory_path: str | PurePath) -> bool:
        """``True`` when any component of *directory_path* is an excluded name."""
        return any(part in self.excluded_paths for part in PurePath(directory_path).parts)

"""File-backup restore points.

Layout under ``<root>/.codeatlas/``::

    restore-points.json          # manifest, oldest first, capped
    backups/<id>/<flattened path> # file bodies at creation time

Flattened paths replace ``/`` and ``\\`` with ``__``.
"""

from __future__ import annotations

import json
import os
import secrets
import shutil
import time
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

from codeatlas.core.errors import RestoreError
from codeatlas.core.excludes import DATA_DIR_NAME

log = structlog.get_logger()

MANIFEST_NAME = "restore-points.json"
BACKUPS_DIR_NAME = "backups"

_DIGITS36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class RestorePoint(BaseModel):
    id: str
    timestamp: int = Field(description="Creation time in epoch milliseconds.")
    files: list[str]
    message: str


def new_point_id(now_ms: int | None = None) -> str:
    """``rp-<epoch ms>-<6 random base36 chars>``."""
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_DIGITS36) for _ in range(6))
    return f"rp-{ms}-{suffix}"


def flatten_path(relative_path: str) -> str:
    return relative_path.replace("/", "__").replace("\\", "__")


def resolve_inside_root(root: Path, relative_path: str) -> Path:
    """Absolute path for ``relative_path``; raises if it escapes ``root``."""
    resolved_root = root.resolve()
    target = (resolved_root / relative_path).resolve()
    if not target.is_relative_to(resolved_root):
        raise RestoreError.path_outside_root(relative_path, str(resolved_root))
    return target


class RestoreStore:
    """Append-only restore point log with per-point file backups."""

    def __init__(self, root: Path, *, max_points: int = 100) -> None:
        self._root = root.resolve()
        self._data_dir = self._root / DATA_DIR_NAME
        self._max_points = max(1, max_points)

    @property
    def manifest_path(self) -> Path:
        return self._data_dir / MANIFEST_NAME

    def backup_dir(self, point_id: str) -> Path:
        return self._data_dir / BACKUPS_DIR_NAME / point_id

    def list(self) -> list[RestorePoint]:
        """Restore points, oldest first. A corrupt manifest reads as empty."""
        path = self.manifest_path
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.warning("restore.manifest_unreadable", path=str(path), exc_info=True)
            return []
        if not isinstance(raw, list):
            return []

        points: list[RestorePoint] = []
        for item in raw:
            try:
                points.append(RestorePoint.model_validate(item))
            except ValidationError:
                log.debug("restore.manifest_entry_invalid", entry=str(item)[:200])
        return points

    def get(self, point_id: str) -> RestorePoint:
        for point in self.list():
            if point.id == point_id:
                return point
        raise RestoreError.not_found(point_id)

    def create(self, files: list[str], message: str) -> RestorePoint:
        """Back up ``files`` (root-relative) and record a restore point.

        Files that cannot be read (for example, not yet created) are listed
        but have no backup; restoring skips them.
        """
        point = RestorePoint(
            id=new_point_id(),
            timestamp=int(time.time() * 1000),
            files=list(files),
            message=message,
        )
        backup_dir = self.backup_dir(point.id)
        backup_dir.mkdir(parents=True, exist_ok=True)

        for rel in point.files:
            source = resolve_inside_root(self._root, rel)
            try:
                content = source.read_bytes()
            except OSError:
                continue
            (backup_dir / flatten_path(rel)).write_bytes(content)

        points = self.list()
        points.append(point)
        evicted = points[: max(0, len(points) - self._max_points)]
        points = points[len(evicted) :]
        self._save(points)
        for old in evicted:
            shutil.rmtree(self.backup_dir(old.id), ignore_errors=True)
        log.info("restore.created", point_id=point.id, files=len(point.files), evicted=len(evicted))
        return point

    def restore(self, point_id: str) -> list[str]:
        """Write backed-up bodies back; returns the files actually restored.

        Raises:
            RestoreError: unknown ``point_id``.
        """
        point = self.get(point_id)
        backup_dir = self.backup_dir(point_id)
        restored: list[str] = []
        for rel in point.files:
            backup = backup_dir / flatten_path(rel)
            try:
                content = backup.read_bytes()
            except OSError:
                continue
            target = resolve_inside_root(self._root, rel)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            restored.append(rel)
        log.info("restore.applied", point_id=point_id, files=len(restored))
        return restored

    def _save(self, points: list[RestorePoint]) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        tmp = self.manifest_path.with_suffix(".json.tmp")
        tmp.write_text(
            json.dumps([p.model_dump() for p in points], indent=2), encoding="utf-8"
        )
        os.replace(tmp, self.manifest_path)

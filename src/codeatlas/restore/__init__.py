"""Restore module - file backups keyed by restore point id."""

from codeatlas.restore.store import RestorePoint, RestoreStore, flatten_path, resolve_inside_root

__all__ = ["RestorePoint", "RestoreStore", "flatten_path", "resolve_inside_root"]

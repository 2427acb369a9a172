"""Daemon module - background refresh of embedding caches."""

from codeatlas.daemon.tracker import EmbeddingTracker, normalize_event_path, should_track

__all__ = ["EmbeddingTracker", "normalize_event_path", "should_track"]

"""Application context for MCP handlers.

Single object passed to all tool handlers with access to the services.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codeatlas.config.models import CodeAtlasConfig
    from codeatlas.daemon.tracker import EmbeddingTracker
    from codeatlas.embedding.cache import DiskEmbeddingCache
    from codeatlas.embedding.provider import EmbeddingAdapter
    from codeatlas.navigate.labeling import CompletionProvider
    from codeatlas.navigate.navigator import SemanticNavigator
    from codeatlas.restore.store import RestoreStore
    from codeatlas.search.cache import IndexCache
    from codeatlas.search.file_search import FileSearchService, SearchIndex
    from codeatlas.search.identifiers import IdentifierIndex, IdentifierSearchService


@dataclass
class AppContext:
    """Context object passed to all MCP tool handlers.

    Both search services share this context's index caches, so
    ``invalidate_indexes`` is seen by every later query.
    """

    root: Path
    config: CodeAtlasConfig
    adapter: EmbeddingAdapter
    completion: CompletionProvider
    disk_cache: DiskEmbeddingCache
    file_index: IndexCache[SearchIndex]
    identifier_index: IndexCache[IdentifierIndex]
    file_search: FileSearchService
    identifier_search: IdentifierSearchService
    navigator: SemanticNavigator
    restore_store: RestoreStore
    tracker: EmbeddingTracker

    @classmethod
    def create(
        cls,
        root: Path,
        config: CodeAtlasConfig | None = None,
        *,
        adapter: EmbeddingAdapter | None = None,
        completion: CompletionProvider | None = None,
    ) -> AppContext:
        """Factory to create context with all services wired together.

        Args:
            root: Project root
            config: Loaded configuration; read from ``root`` when omitted
            adapter: Embedding adapter override (tests pass fakes here)
            completion: Completion provider override for cluster labels
        """
        from codeatlas.config.loader import load_config
        from codeatlas.core.excludes import DATA_DIR_NAME
        from codeatlas.daemon.tracker import EmbeddingTracker
        from codeatlas.embedding.cache import DiskEmbeddingCache
        from codeatlas.embedding.provider import create_embedding_adapter
        from codeatlas.navigate.labeling import OllamaCompletionProvider
        from codeatlas.navigate.navigator import SemanticNavigator
        from codeatlas.restore.store import RestoreStore
        from codeatlas.search.cache import IndexCache
        from codeatlas.search.file_search import FileSearchService
        from codeatlas.search.identifiers import IdentifierSearchService

        root = root.resolve()
        config = config or load_config(root)

        if adapter is None:
            adapter = create_embedding_adapter(config.embedding)
        if completion is None:
            completion = OllamaCompletionProvider(
                config.completion.ollama_url,
                config.completion.chat_model,
                timeout_sec=config.completion.timeout_sec,
            )

        disk_cache = DiskEmbeddingCache(root / DATA_DIR_NAME)
        file_index: IndexCache[SearchIndex] = IndexCache(config.search.file_index_ttl_sec)
        identifier_index: IndexCache[IdentifierIndex] = IndexCache(
            config.search.identifier_index_ttl_sec
        )

        file_search = FileSearchService(root, config.search, adapter, disk_cache, file_index)
        identifier_search = IdentifierSearchService(
            root, config.search, adapter, disk_cache, identifier_index
        )

        # Tracker refreshes both disk caches; each refresh invalidates its own snapshot
        tracker = EmbeddingTracker(
            root=root,
            refreshers=[file_search.refresh, identifier_search.refresh],
            debounce_ms=config.tracker.debounce_ms,
            max_files_per_tick=config.tracker.max_files_per_tick,
        )

        return cls(
            root=root,
            config=config,
            adapter=adapter,
            completion=completion,
            disk_cache=disk_cache,
            file_index=file_index,
            identifier_index=identifier_index,
            file_search=file_search,
            identifier_search=identifier_search,
            navigator=SemanticNavigator(root, config.navigator, adapter, completion),
            restore_store=RestoreStore(root, max_points=config.restore.max_points),
            tracker=tracker,
        )

    def invalidate_indexes(self) -> None:
        """Drop both in-memory index snapshots; the next query rebuilds."""
        self.file_index.invalidate()
        self.identifier_index.invalidate()

    async def aclose(self) -> None:
        await self.tracker.stop()
        await self.adapter.aclose()
        aclose = getattr(self.completion, "aclose", None)
        if aclose is not None:
            await aclose()

"""Navigate module - spectral clustering of file embeddings into a labeled tree."""

from codeatlas.navigate.clustering import (
    build_affinity,
    find_optimal_k,
    find_path_pattern,
    kmeans,
    normalized_laplacian,
    spectral_cluster,
)
from codeatlas.navigate.labeling import (
    ClusterSummary,
    Completed,
    CompletionProvider,
    OllamaCompletionProvider,
    Unavailable,
    describe_files,
    label_sibling_clusters,
)
from codeatlas.navigate.navigator import ClusterNode, ClusterTree, NavFile, SemanticNavigator

__all__ = [
    "ClusterNode",
    "ClusterSummary",
    "ClusterTree",
    "Completed",
    "CompletionProvider",
    "NavFile",
    "OllamaCompletionProvider",
    "SemanticNavigator",
    "Unavailable",
    "build_affinity",
    "describe_files",
    "find_optimal_k",
    "find_path_pattern",
    "kmeans",
    "label_sibling_clusters",
    "normalized_laplacian",
    "spectral_cluster",
]

"""Structure module - skeletons, context trees and symbol usages from the parser alone."""

from codeatlas.structure.outline import (
    SymbolUsage,
    TreeNode,
    blast_radius,
    build_context_tree,
    context_tree,
    file_skeleton,
    find_usages,
)

__all__ = [
    "SymbolUsage",
    "TreeNode",
    "blast_radius",
    "build_context_tree",
    "context_tree",
    "file_skeleton",
    "find_usages",
]

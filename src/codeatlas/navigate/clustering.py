"""Spectral clustering with an eigengap heuristic.

Pipeline for ``n`` vectors:

1. affinity ``A[i, j] = max(0, cos(v_i, v_j))``, zero diagonal
2. normalized Laplacian ``L = I - D^-1/2 A D^-1/2`` (entries for
   near-zero-degree nodes are 0)
3. eigendecomposition, ascending eigenvalues
4. ``k`` at the largest eigengap in ``[2, min(max_k, n - 1)]``
5. k smallest eigenvectors as row-normalized spectral embedding
6. k-means with farthest-point seeding from point 0

Everything is deterministic for a given input.
"""

from __future__ import annotations

import math

import numpy as np

# Degrees at or below this are treated as isolated nodes
DEGREE_EPSILON = 1e-10
KMEANS_MAX_ITER = 50


def build_affinity(vectors: np.ndarray) -> np.ndarray:
    """Symmetric non-negative cosine affinity with a zero diagonal."""
    data = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(data, axis=1)
    safe = np.where(norms > 0, norms, 1.0)
    unit = data / safe[:, None]
    unit[norms == 0] = 0.0
    affinity = np.clip(unit @ unit.T, 0.0, None)
    np.fill_diagonal(affinity, 0.0)
    return affinity


def normalized_laplacian(affinity: np.ndarray) -> np.ndarray:
    degrees = affinity.sum(axis=1) - np.diag(affinity)
    valid = degrees > DEGREE_EPSILON
    inv_sqrt = np.zeros_like(degrees)
    inv_sqrt[valid] = 1.0 / np.sqrt(degrees[valid])
    laplacian = -affinity * np.outer(inv_sqrt, inv_sqrt)
    laplacian[~np.outer(valid, valid)] = 0.0
    np.fill_diagonal(laplacian, 1.0)
    return laplacian


def find_optimal_k(eigenvalues: np.ndarray | list[float], max_k: int) -> int:
    """Cluster count at the largest gap between consecutive sorted eigenvalues."""
    ordered = sorted(float(v) for v in eigenvalues)
    if len(ordered) <= 2:
        return min(2, len(ordered))

    best_gap = 0.0
    best_k = 2
    for k in range(2, min(max_k, len(ordered) - 1) + 1):
        gap = ordered[k] - ordered[k - 1]
        if gap > best_gap:
            best_gap = gap
            best_k = k
    return best_k


def kmeans(data: np.ndarray, k: int, max_iter: int = KMEANS_MAX_ITER) -> list[int]:
    """Lloyd's k-means with deterministic farthest-point seeding.

    The first centroid is point 0; each further centroid is the unused point
    with the largest squared distance to its nearest existing centroid.
    Stops early when no assignment changes. Empty clusters keep their
    previous centroid.
    """
    points = np.asarray(data, dtype=np.float64)
    n = points.shape[0]
    centroids = [points[0].copy()]
    used = {0}
    for _ in range(1, k):
        best_idx = 0
        best_dist = -1.0
        for i in range(n):
            if i in used:
                continue
            min_dist = min(float(np.sum((points[i] - c) ** 2)) for c in centroids)
            if min_dist > best_dist:
                best_dist = min_dist
                best_idx = i
        centroids.append(points[best_idx].copy())
        used.add(best_idx)

    centers = np.vstack(centroids)
    assignments = [0] * n
    for _ in range(max_iter):
        changed = False
        dists = ((points[:, None, :] - centers[None, :, :]) ** 2).sum(axis=2)
        for i in range(n):
            best = int(np.argmin(dists[i]))
            if assignments[i] != best:
                assignments[i] = best
                changed = True
        if not changed:
            break
        labels = np.asarray(assignments)
        for c in range(k):
            members = points[labels == c]
            if len(members):
                centers[c] = members.mean(axis=0)
    return assignments


def spectral_cluster(vectors: np.ndarray | list[list[float]], max_clusters: int = 20) -> list[list[int]]:
    """Partition vector indices into clusters.

    ``n <= 1`` yields one cluster; ``n <= max_clusters`` yields singletons.
    Clusters are ordered by their first member; members keep input order.
    """
    data = np.asarray(vectors, dtype=np.float64)
    n = data.shape[0] if data.ndim else 0
    if n <= 1:
        return [list(range(n))]
    if n <= max_clusters:
        return [[i] for i in range(n)]

    laplacian = normalized_laplacian(build_affinity(data))
    eigenvalues, eigenvectors = np.linalg.eigh(laplacian)

    max_k = min(max_clusters, max(2, math.floor(math.sqrt(n))))
    k = find_optimal_k(eigenvalues, max_k)

    order = np.argsort(eigenvalues, kind="stable")[:k]
    embedding = eigenvectors[:, order]
    norms = np.linalg.norm(embedding, axis=1)
    big = norms > DEGREE_EPSILON
    embedding[big] = embedding[big] / norms[big][:, None]

    clusters: dict[int, list[int]] = {}
    for i, label in enumerate(kmeans(embedding, k)):
        clusters.setdefault(label, []).append(i)
    return list(clusters.values())


def find_path_pattern(paths: list[str]) -> str | None:
    """Shared directory prefix and/or file name of a group of paths.

    ``src/a/x.ts`` + ``src/b/x.ts`` -> ``src/x.ts``; a shared prefix alone
    gives ``prefix/*``; a shared file name alone gives ``*/name``.
    """
    if len(paths) <= 1:
        return None

    parts = [path.split("/") for path in paths]
    min_len = min(len(p) for p in parts)
    prefix = ""
    for i in range(min_len - 1):
        segment = parts[0][i]
        if all(p[i] == segment for p in parts):
            prefix += segment + "/"
        else:
            break

    names = [p[-1] for p in parts]
    same_name = all(name == names[0] for name in names)

    if prefix and same_name:
        return f"{prefix}{names[0]}"
    if prefix:
        return f"{prefix}*"
    if same_name:
        return f"*/{names[0]}"
    return None

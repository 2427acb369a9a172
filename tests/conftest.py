"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides a deterministic embedding backend so no test needs a live model.
"""

import re
import sys
import zlib
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local codeatlas package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of codeatlas modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("codeatlas"):
        del sys.modules[module_name]

from codeatlas.embedding.provider import EmbeddingAdapter  # noqa: E402

HASH_DIM = 64
_WORD = re.compile(r"[a-z0-9]+")


def hashed_bag_of_words(text: str, dim: int = HASH_DIM) -> list[float]:
    """Unit vector of hashed word counts; texts sharing words are similar."""
    vec = [0.0] * dim
    for word in _WORD.findall(text.lower()):
        vec[zlib.crc32(word.encode()) % dim] += 1.0
    norm = sum(v * v for v in vec) ** 0.5
    if norm == 0.0:
        vec[0] = 1.0
        return vec
    return [v / norm for v in vec]


class HashingBackend:
    """Deterministic backend: vector is a pure function of the input text."""

    name = "Fake"

    def __init__(self, dim: int = HASH_DIM) -> None:
        self.dim = dim
        self.calls: list[list[str]] = []
        self.closed = False

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [hashed_bag_of_words(t, self.dim) for t in texts]

    async def aclose(self) -> None:
        self.closed = True

    @property
    def embedded_texts(self) -> list[str]:
        return [text for batch in self.calls for text in batch]


@pytest.fixture
def fake_backend() -> HashingBackend:
    return HashingBackend()


@pytest.fixture
def fake_adapter(fake_backend: HashingBackend) -> EmbeddingAdapter:
    return EmbeddingAdapter(fake_backend, batch_size=8)


@pytest.fixture
def backend_factory() -> type[HashingBackend]:
    """The backend class, for tests that need a second model (e.g. another width)."""
    return HashingBackend

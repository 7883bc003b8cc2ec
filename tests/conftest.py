import numpy as np
import pytest

from constrained_lda import GibbsLDA, LDAParams


VOCAB_6 = [f"w{i}" for i in range(6)]


@pytest.fixture
def vocab6():
    return list(VOCAB_6)


@pytest.fixture
def small_docs():
    # 4 documents over a 6-word vocabulary
    return [
        [0, 1, 2, 0, 1],
        [3, 4, 5, 3],
        [0, 2, 4, 1, 3, 5, 0],
        [5, 5, 4],
    ]


@pytest.fixture
def small_params(vocab6):
    return LDAParams(num_topics=2, vocab=vocab6, alpha=0.1, beta=0.01, seed=7, verbose=False)


@pytest.fixture
def separable_docs():
    """20 documents, each drawn from one of two disjoint 3-word vocabularies."""
    rng = np.random.default_rng(0)
    docs = []
    for i in range(20):
        base = 3 * (i % 2)
        docs.append((base + rng.integers(3, size=20)).tolist())
    return docs


@pytest.fixture
def make_model():
    def _make(params, docs, snapshot=None, **kwargs):
        model = GibbsLDA(params, snapshot=snapshot, **kwargs)
        model.add_documents(docs)
        return model

    return _make

import numpy as np
import pytest

from constrained_lda import TEST, TRAIN, DocumentLinks, LDAParams, ModelSnapshot


def test_params_defaults(vocab6):
    params = LDAParams(num_topics=3, vocab=vocab6)
    assert params.num_vocab == 6
    assert params.vocab == tuple(vocab6)
    assert params.alpha == 1.0
    assert params.beta == 0.1
    assert params.potential == "floor"
    assert params.floor == 0.5
    assert not params.constrained
    assert not params.update_alpha


@pytest.mark.parametrize(
    "overrides",
    [
        {"num_topics": 0},
        {"vocab": []},
        {"alpha": 0.0},
        {"beta": -1.0},
        {"num_top_words": 0},
        {"update_alpha_interval": 0},
    ],
)
def test_params_validation(vocab6, overrides):
    config = {"num_topics": 2, "vocab": vocab6}
    config.update(overrides)
    with pytest.raises(ValueError):
        LDAParams(**config)


def test_params_from_dict(vocab6):
    params = LDAParams.from_dict({"num_topics": 4, "vocab": vocab6, "beta": 0.05})
    assert params.num_topics == 4
    assert params.beta == 0.05

    with pytest.raises(ValueError, match="lambda"):
        LDAParams.from_dict({"num_topics": 4, "vocab": vocab6, "lambda": 1.0})


def test_params_describe(vocab6):
    params = LDAParams(num_topics=2, vocab=vocab6, constrained=True, update_alpha=True)
    text = params.describe()
    assert "#topics: 2" in text
    assert "floor: 0.5" in text
    assert "update alpha every 10 iters" in text


def test_sampling_mode_positions():
    assert list(TRAIN.sample_positions(5)) == [0, 1, 2, 3, 4]
    assert list(TRAIN.heldout_positions(5)) == [0, 1, 2, 3, 4]
    assert list(TEST.sample_positions(5)) == [0, 2, 4]
    assert list(TEST.heldout_positions(5)) == [1, 3]
    assert TEST.sample_size(7) == 4
    assert TEST.heldout_size(7) == 3
    assert TEST.heldout_size(1) == 0


def test_snapshot_validation():
    snap = ModelSnapshot(alpha=[0.5, 0.5], phi=[[0.25, 0.75], [1.0, 0.0]])
    assert snap.num_topics == 2
    assert snap.num_vocab == 2
    assert snap.alpha.dtype == np.float64

    with pytest.raises(ValueError):
        ModelSnapshot(alpha=[0.5], phi=[[0.5, 0.5], [0.5, 0.5]])
    with pytest.raises(ValueError):
        ModelSnapshot(alpha=[-0.1, 0.5], phi=[[0.5, 0.5], [0.5, 0.5]])
    with pytest.raises(ValueError):
        ModelSnapshot(alpha=[0.5, 0.5], phi=[[0.5, 0.4], [0.5, 0.5]])


def test_snapshot_copy_shares_no_arrays():
    snap = ModelSnapshot(alpha=np.array([1.0]), phi=np.array([[0.5, 0.5]]))
    other = snap.copy()
    other.phi[0, 0] = 0.9
    assert snap.phi[0, 0] == 0.5
    assert not np.shares_memory(snap.alpha, other.alpha)


def test_document_links_truthiness():
    links = DocumentLinks()
    assert not links
    links.cannot_link.add(3)
    assert links

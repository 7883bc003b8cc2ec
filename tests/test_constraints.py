import dataclasses

import numpy as np
import pytest

from constrained_lda import GibbsLDA, LDAParams


def _constrained_params(vocab, **overrides):
    base = dict(
        num_topics=2,
        vocab=vocab,
        alpha=0.1,
        beta=0.01,
        constrained=True,
        potential="floor",
        floor=0.5,
        seed=5,
        verbose=False,
    )
    base.update(overrides)
    return LDAParams(**base)


def _linked_model(vocab, potential):
    model = GibbsLDA(_constrained_params(vocab, potential=potential))
    model.add_documents([[0, 1, 2, 0], [3, 4, 5, 3, 4], [0, 3], [1, 2, 5, 4, 0, 1]])
    model.add_must_link(0, 1)
    model.add_must_link(0, 3)
    model.add_cannot_link(0, 2)
    model.initialize(
        topic_assignments=[
            [0, 0, 0, 0],
            [1, 1, 1, 1, 0],
            [0, 1],
            [1, 1, 1, 0, 0, 0],
        ]
    )
    return model


def test_floor_potential_of_document(vocab6):
    model = _linked_model(vocab6, "floor")
    # must-links: doc1 counts [1, 4], doc3 counts [3, 3]; cannot-link: doc2 counts [1, 1]
    expected = np.log([1, 4]) + np.log([3, 3]) - np.log([1, 1])
    np.testing.assert_allclose(model.log_potential(model.doc(0)), expected)


def test_floor_potential_clamps_empty_topics(vocab6):
    model = _linked_model(vocab6, "floor")
    # doc0 has counts [4, 0]; both doc1 and doc3 only link back to doc0
    np.testing.assert_allclose(model.log_potential(model.doc(1)), np.log([4.0, 0.5]))


def test_ratio_potential_of_document(vocab6):
    model = _linked_model(vocab6, "ratio")
    expected = (
        np.log1p(np.array([1, 4]) / 5)
        + np.log1p(np.array([3, 3]) / 6)
        - np.log1p(np.array([1, 1]) / 2)
    )
    np.testing.assert_allclose(model.log_potential(model.doc(0)), expected)


def test_potential_is_added_to_scores(vocab6):
    model = _linked_model(vocab6, "floor")
    plain = GibbsLDA(dataclasses.replace(model.params, constrained=False))
    plain.add_documents([list(d.words) for d in model.corpus])
    plain.initialize(topic_assignments=[d.topic_assigns.tolist() for d in model.corpus])

    doc, plain_doc = model.doc(0), plain.doc(0)
    model._unassign(doc, 1)
    plain._unassign(plain_doc, 1)
    constrained_scores = model.topic_scores(doc, doc.word(1))
    plain_scores = plain.topic_scores(plain_doc, plain_doc.word(1))
    np.testing.assert_allclose(constrained_scores - plain_scores, model.log_potential(doc))


def test_unlinked_document_has_zero_potential(vocab6):
    model = GibbsLDA(_constrained_params(vocab6))
    model.add_documents([[0, 1], [2, 3]])
    model.initialize()
    np.testing.assert_array_equal(model.log_potential(model.doc(0)), np.zeros(2))


def test_links_are_symmetric_on_the_sampler(vocab6):
    model = GibbsLDA(_constrained_params(vocab6))
    model.add_documents([[0], [1], [2]])
    model.add_must_link(2, 0)
    model.add_cannot_link(1, 2)
    assert model.doc(0).links.must_link == {2}
    assert model.doc(2).links.must_link == {0}
    assert model.doc(1).links.cannot_link == {2}
    assert model.doc(2).links.cannot_link == {1}


def _pair_distance(constrained):
    """Mean L1 distance between the topic distributions of paired documents."""
    vocab = [f"w{i}" for i in range(40)]
    # word evidence is weak (large beta); each document has its own two words
    docs = [[2 * i, 2 * i + 1] * 10 for i in range(20)]
    params = _constrained_params(vocab, beta=10.0, constrained=constrained, seed=2)
    model = GibbsLDA(params)
    model.add_documents(docs)
    if constrained:
        for i in range(0, 20, 2):
            model.add_must_link(i, i + 1)
    model.initialize()
    model.sample(30)
    theta = model.doc_topic_dist()
    return np.mean([np.abs(theta[i] - theta[i + 1]).sum() for i in range(0, 20, 2)])


def test_must_link_pulls_documents_together():
    assert _pair_distance(constrained=True) < _pair_distance(constrained=False)


def test_constrained_sampling_keeps_invariants(vocab6):
    model = _linked_model(vocab6, "ratio")
    model.sample(5)
    for doc in model.corpus:
        assert doc.topic_counts.sum() == doc.num_assigned == len(doc)
    np.testing.assert_array_equal(
        model.topics.word_count_matrix.sum(axis=1), model.topics.totals
    )


def test_invalid_potential_form_rejected(vocab6):
    with pytest.raises(ValueError):
        _constrained_params(vocab6, potential="cubic")
    with pytest.raises(ValueError):
        _constrained_params(vocab6, floor=0.0)

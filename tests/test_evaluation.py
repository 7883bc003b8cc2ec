import math
import warnings

import numpy as np
import pytest

from constrained_lda.data_structures import TEST, TRAIN
from constrained_lda.evaluation import (
    codocument_frequency_matrix,
    coherence_score,
    compute_phi,
    compute_theta,
    log_likelihood,
    perplexity,
    rank_words,
    top_words,
    topic_coherence,
)
from constrained_lda.stores import Corpus, TopicStore


def _assigned_corpus(docs, assignments, num_topics, num_vocab, mode=TRAIN):
    corpus = Corpus(num_topics, num_vocab)
    topics = TopicStore(num_topics, num_vocab)
    for words, topic_row in zip(docs, assignments):
        doc = corpus[corpus.append(words)]
        for token in mode.sample_positions(len(doc)):
            doc.assign_topic(token, topic_row[token])
            topics.add_word(topic_row[token], doc.word(token))
    return corpus, topics


def test_theta_and_phi_rows_sum_to_one():
    docs = [[0, 1, 2], [2, 2, 3, 1]]
    corpus, topics = _assigned_corpus(docs, [[0, 1, 0], [1, 1, 0, 0]], 2, 4)
    alpha = np.full(2, 0.5)

    theta = compute_theta(corpus, alpha, prior_mass=1.0, mode=TRAIN)
    assert theta.shape == (2, 2)
    np.testing.assert_allclose(theta.sum(axis=1), 1.0)
    assert theta[0, 0] == pytest.approx((0.5 + 2) / (1.0 + 3))

    phi = compute_phi(topics, beta=0.1)
    assert phi.shape == (2, 4)
    np.testing.assert_allclose(phi.sum(axis=1), 1.0)
    assert phi[1, 2] == pytest.approx((0.1 + 2) / (0.4 + 3))


def test_theta_uses_sampled_size_in_test_mode():
    docs = [[0, 1, 2, 3, 0]]
    corpus, _ = _assigned_corpus(docs, [[1, -1, 1, -1, 0]], 2, 4, mode=TEST)
    theta = compute_theta(corpus, np.full(2, 0.5), prior_mass=1.0, mode=TEST)
    # 3 of 5 positions are sampled in test mode
    np.testing.assert_allclose(theta[0], [(0.5 + 1) / 4.0, (0.5 + 2) / 4.0])


def test_log_likelihood_scores_heldout_positions_only():
    docs = [[0, 1, 0, 1]]
    corpus = Corpus(1, 2)
    corpus.append(docs[0])
    theta = np.array([[1.0]])
    phi = np.array([[0.25, 0.75]])

    train_ll = log_likelihood(corpus, theta, phi, TRAIN)
    assert train_ll == pytest.approx(2 * math.log(0.25) + 2 * math.log(0.75))

    # test mode scores positions 1 and 3, both word 1
    test_ll = log_likelihood(corpus, theta, phi, TEST)
    assert test_ll == pytest.approx(2 * math.log(0.75))


def test_log_likelihood_of_impossible_word_is_minus_infinity():
    corpus = Corpus(1, 2)
    corpus.append([0, 1])
    theta = np.array([[1.0]])
    phi = np.array([[1.0, 0.0]])

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        ll = log_likelihood(corpus, theta, phi, TEST)
    assert ll == -math.inf
    assert perplexity(ll, 1) == math.inf


def test_perplexity():
    assert perplexity(-4 * math.log(2.0), 4) == pytest.approx(2.0)
    assert math.isnan(perplexity(0.0, 0))


def test_rank_words_breaks_ties_by_index():
    weights = np.array([0.1, 0.3, 0.3, 0.05, 0.25])
    np.testing.assert_array_equal(rank_words(weights, 3), [1, 2, 4])
    assert len(rank_words(weights, 10)) == 5


def test_top_words_pairs():
    weights = np.array([1, 5, 3])
    assert top_words(weights, ["a", "b", "c"], 2) == [("b", 5), ("c", 3)]


def test_codocument_frequency_matrix():
    corpus = Corpus(1, 4)
    corpus.extend([[0, 1], [0, 1, 2], [1, 3], [0]])
    cofreq = codocument_frequency_matrix(corpus.word_document_matrix(), [0, 1, 2])
    expected = np.array(
        [
            [3, 2, 1],
            [2, 3, 1],
            [1, 1, 1],
        ]
    )
    np.testing.assert_array_equal(cofreq, expected)
    np.testing.assert_array_equal(cofreq, cofreq.T)


def test_coherence_score():
    cofreq = np.array(
        [
            [3, 2, 1],
            [2, 3, 1],
            [1, 1, 1],
        ]
    )
    expected = math.log(3 / 3) + math.log(2 / 3) + math.log(2 / 3)
    assert coherence_score(cofreq) == pytest.approx(expected)
    assert coherence_score(np.array([[4]])) == 0.0


def test_coherence_score_unseen_word_is_infinite():
    cofreq = np.array([[0, 0], [0, 2]])
    assert coherence_score(cofreq) == math.inf


def test_topic_coherence_per_topic():
    corpus = Corpus(2, 4)
    corpus.extend([[0, 1], [0, 1], [2, 3], [2]])
    phi = np.array(
        [
            [0.5, 0.4, 0.05, 0.05],
            [0.05, 0.05, 0.5, 0.4],
        ]
    )
    scores = topic_coherence(corpus, phi, num_top_words=2)
    # topic 0: words 0, 1 always co-occur; topic 1: word 3 appears once with 2
    assert scores[0] == pytest.approx(math.log((2 + 1) / 2))
    assert scores[1] == pytest.approx(math.log((1 + 1) / 2))

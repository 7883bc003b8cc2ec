"""Likelihood, perplexity and topic-coherence evaluation."""

from typing import List, Sequence, Tuple
import numpy as np
from scipy import sparse

from .data_structures import SamplingMode
from .stores import Corpus, TopicStore


# =====================================================================
# Distributions
# =====================================================================


def compute_theta(
    corpus: Corpus,
    alpha: np.ndarray,
    prior_mass: float,
    mode: SamplingMode,
) -> np.ndarray:
    """
    Document-topic distributions.

    theta[d, t] = (alpha_t + n_dt) / (prior_mass + sample_size(len d))

    Args:
        corpus: Corpus with current topic counts.
        alpha: Prior vector (n_topics,).
        prior_mass: Original symmetric prior times the number of topics.
        mode: Sampling mode, which fixes the sample size of a document.

    Returns:
        Array of shape (n_docs, n_topics).
    """
    if len(corpus) == 0:
        return np.zeros((0, alpha.shape[0]))
    counts = np.vstack([doc.topic_counts for doc in corpus]).astype(np.float64)
    sizes = np.array([mode.sample_size(len(doc)) for doc in corpus], dtype=np.float64)
    return (alpha[None, :] + counts) / (prior_mass + sizes)[:, None]


def compute_phi(topics: TopicStore, beta: float) -> np.ndarray:
    """
    Topic-word distributions.

    phi[t, w] = (beta + n_tw) / (beta * V + n_t)

    Args:
        topics: Topic store with current counts.
        beta: Symmetric word prior.

    Returns:
        Array of shape (n_topics, n_vocab).
    """
    numer = topics.word_count_matrix.astype(np.float64) + beta
    denom = beta * topics.num_vocab + topics.totals.astype(np.float64)
    return numer / denom[:, None]


# =====================================================================
# Likelihood & perplexity
# =====================================================================


def log_likelihood(
    corpus: Corpus,
    theta: np.ndarray,
    phi: np.ndarray,
    mode: SamplingMode,
) -> float:
    """
    Log-likelihood of the held-out positions under theta and phi.

    Args:
        corpus: Corpus providing word ids.
        theta: Document-topic distributions (n_docs, n_topics).
        phi: Topic-word distributions (n_topics, n_vocab).
        mode: Sampling mode selecting the held-out positions.

    Returns:
        Sum over held-out tokens of log(sum_t theta[d, t] * phi[t, w]).
    """
    total = 0.0
    for doc_id, doc in enumerate(corpus):
        positions = mode.heldout_positions(len(doc))
        if len(positions) == 0:
            continue
        words = doc.words[positions.start:positions.stop:positions.step]
        with np.errstate(divide="ignore"):
            total += float(np.log(theta[doc_id] @ phi[:, words]).sum())
    return total


def perplexity(log_lik: float, num_tokens: int) -> float:
    """exp(-log_lik / num_tokens), or nan when nothing was scored."""
    if num_tokens <= 0:
        return float("nan")
    return float(np.exp(-log_lik / num_tokens))


# =====================================================================
# Word ranking & coherence
# =====================================================================


def rank_words(weights: np.ndarray, n: int) -> np.ndarray:
    """
    Indices of the n largest weights, ties broken by ascending index.

    Args:
        weights: Per-word weights (n_vocab,).
        n: Number of words; clipped to the vocabulary size.

    Returns:
        Array of word ids.
    """
    order = np.argsort(-np.asarray(weights, dtype=np.float64), kind="stable")
    return order[: min(n, order.shape[0])]


def top_words(
    weights: np.ndarray,
    vocab: Sequence[str],
    n: int,
) -> List[Tuple[str, float]]:
    """
    Top n (word, weight) pairs.

    Args:
        weights: Per-word weights (n_vocab,).
        vocab: Vocabulary list.
        n: Number of words.

    Returns:
        List of (word, weight) tuples.
    """
    return [(vocab[w], weights[w].item()) for w in rank_words(weights, n)]


def codocument_frequency_matrix(
    incidence: sparse.csr_matrix,
    word_ids: Sequence[int],
) -> np.ndarray:
    """
    Co-document frequencies among a set of words.

    Entry (i, i) counts documents containing word i; entry (i, j) counts
    documents containing both word i and word j.

    Args:
        incidence: Boolean document-word matrix (n_docs, n_vocab).
        word_ids: Words to compare.

    Returns:
        Symmetric integer matrix (len(word_ids), len(word_ids)).
    """
    sub = incidence[:, np.asarray(word_ids, dtype=np.int64)].astype(np.int64)
    return np.asarray((sub.T @ sub).todense(), dtype=np.int64)


def coherence_score(cofreq: np.ndarray) -> float:
    """
    UMass-style coherence of one topic's top words.

    sum_{i=1..K-1} sum_{j<i} log((cofreq[i, j] + 1) / cofreq[j, j])

    A word with zero document frequency makes the score infinite.

    Args:
        cofreq: Matrix from codocument_frequency_matrix().

    Returns:
        Coherence score.
    """
    rows, cols = np.tril_indices(cofreq.shape[0], k=-1)
    if rows.shape[0] == 0:
        return 0.0
    doc_freq = np.diag(cofreq).astype(np.float64)
    with np.errstate(divide="ignore"):
        ratios = (cofreq[rows, cols] + 1.0) / doc_freq[cols]
        return float(np.log(ratios).sum())


def topic_coherence(
    corpus: Corpus,
    phi: np.ndarray,
    num_top_words: int,
) -> np.ndarray:
    """
    Coherence of every topic's top words over the corpus.

    Args:
        corpus: Corpus providing document membership.
        phi: Topic-word distributions (n_topics, n_vocab).
        num_top_words: Words per topic.

    Returns:
        Array of shape (n_topics,).
    """
    incidence = corpus.word_document_matrix()
    scores = np.zeros(phi.shape[0])
    for topic in range(phi.shape[0]):
        word_ids = rank_words(phi[topic], num_top_words)
        scores[topic] = coherence_score(codocument_frequency_matrix(incidence, word_ids))
    return scores

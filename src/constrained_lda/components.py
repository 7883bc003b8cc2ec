"""Numerical building blocks of the Gibbs sampler."""

import logging
from functools import partial
from typing import Iterable

import numpy as np
from scipy.special import logsumexp

from .protocols import LinkPotential


logger = logging.getLogger(__name__)


# =====================================================================
# Constraint potentials
# =====================================================================


def ratio_potential(topic_counts: np.ndarray, doc_length: int) -> np.ndarray:
    """
    log(1 + n_t / len) for every topic t of a linked document.

    Args:
        topic_counts: Linked document's per-topic counts (n_topics,).
        doc_length: Linked document's token count.

    Returns:
        Log-potential array of shape (n_topics,). All zeros for an empty document.
    """
    if doc_length <= 0:
        return np.zeros(topic_counts.shape[0])
    return np.log1p(topic_counts / float(doc_length))


def floor_potential(topic_counts: np.ndarray, doc_length: int, floor: float) -> np.ndarray:
    """
    log(max(floor, n_t)) for every topic t of a linked document.

    Args:
        topic_counts: Linked document's per-topic counts (n_topics,).
        doc_length: Unused; kept so both forms share one signature.
        floor: Positive lower clamp on the count.

    Returns:
        Log-potential array of shape (n_topics,).
    """
    return np.log(np.maximum(floor, topic_counts.astype(np.float64)))


def get_potential(form: str, floor: float) -> LinkPotential:
    """
    Resolve a potential form name to a callable.

    Args:
        form: 'ratio' or 'floor'.
        floor: Clamp used by the 'floor' form.

    Returns:
        A LinkPotential.
    """
    if form == "ratio":
        return ratio_potential
    if form == "floor":
        return partial(floor_potential, floor=floor)
    raise ValueError(f"Unknown potential form: {form}")


# =====================================================================
# Sampling
# =====================================================================


def select_log_discrete(scores: np.ndarray, rng: np.random.Generator) -> int:
    """
    Draw an index from unnormalized log-weights.

    NaN scores are treated as impossible. If some scores are +inf, the draw is
    uniform among them.

    Args:
        scores: Log-weights (n_topics,).
        rng: Random generator.

    Returns:
        The drawn index, or -1 if no entry has finite probability.
    """
    scores = np.where(np.isnan(scores), -np.inf, scores)
    if np.isposinf(scores).any():
        scores = np.where(np.isposinf(scores), 0.0, -np.inf)
    if not np.isfinite(scores).any():
        return -1
    probs = np.exp(scores - logsumexp(scores))
    cumulative = np.cumsum(probs)
    u = rng.random() * cumulative[-1]
    idx = int(np.searchsorted(cumulative, u, side="right"))
    # u can equal the last cumulative value after rounding
    return min(idx, scores.shape[0] - 1)


# =====================================================================
# Prior re-estimation
# =====================================================================


def prior_update_denominator(sample_sizes: Iterable[int], alpha: float, num_topics: int) -> float:
    """
    Normalizer of the fixed-point prior update, fixed once at initialization.

    Args:
        sample_sizes: Number of sampled tokens per document.
        alpha: Initial symmetric prior per topic.
        num_topics: Number of topics.

    Returns:
        sum_d n_d / (n_d + alpha * K).
    """
    mass = alpha * num_topics
    return float(sum(n / (n + mass) for n in sample_sizes))


def optimize_prior(
    alpha: np.ndarray,
    doc_topic_counts: np.ndarray,
    denominator: float,
    total_mass: float,
) -> np.ndarray:
    """
    One fixed-point step on the per-topic prior vector, rescaled to total_mass.

    Returns the previous prior when the step would leave a non-positive or
    non-finite entry. This update is known to behave poorly with link
    constraints.

    Args:
        alpha: Current prior vector (n_topics,).
        doc_topic_counts: Document-topic count matrix (n_docs, n_topics).
        denominator: Value from prior_update_denominator().
        total_mass: Sum the updated vector is rescaled to.

    Returns:
        New prior vector (n_topics,).
    """
    counts = doc_topic_counts.astype(np.float64)
    numer = (counts / (counts + alpha[None, :])).sum(axis=0)
    with np.errstate(divide="ignore", invalid="ignore"):
        updated = alpha * numer / denominator
        updated = updated * (total_mass / updated.sum())
    if not np.all(np.isfinite(updated)) or not np.all(updated > 0):
        logger.warning("updated prior not positive, keeping %s", list(alpha))
        return alpha.copy()
    return updated

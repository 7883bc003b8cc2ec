"""Protocol definitions for constrained LDA components."""

from typing import Protocol
import numpy as np


class LinkPotential(Protocol):
    """Maps a linked document's topic counts to a per-topic log-potential."""

    def __call__(self, topic_counts: np.ndarray, doc_length: int) -> np.ndarray:
        """
        Compute the log-potential contributed by one linked document.

        Args:
            topic_counts: Linked document's per-topic token counts (n_topics,).
            doc_length: Number of tokens in the linked document.

        Returns:
            Log-potential array of shape (n_topics,).
        """
        ...


class MetricsSink(Protocol):
    """Receives per-iteration (log-likelihood, perplexity) pairs."""

    def write_header(self) -> None:
        """Start a fresh metrics record."""
        ...

    def append(self, log_likelihood: float, perplexity: float) -> None:
        """
        Append one iteration's metrics.

        Args:
            log_likelihood: Log-likelihood of the held-out tokens.
            perplexity: Perplexity of the held-out tokens.
        """
        ...

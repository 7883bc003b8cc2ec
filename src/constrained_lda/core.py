"""Collapsed Gibbs sampler for LDA and constrained LDA."""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .components import (
    get_potential,
    optimize_prior,
    prior_update_denominator,
    select_log_discrete,
)
from .data_structures import (
    TEST,
    TRAIN,
    IterationMetrics,
    LDAParams,
    ModelSnapshot,
    SamplingMode,
)
from .evaluation import (
    compute_phi,
    compute_theta,
    log_likelihood,
    perplexity,
    top_words,
    topic_coherence,
)
from .exceptions import CLDAError, NotInitializedError
from .protocols import MetricsSink
from .stores import Corpus, Document, TopicStore
from .utils import MetricsFileSink


logger = logging.getLogger(__name__)


class GibbsLDA:
    """
    LDA trained or evaluated with collapsed Gibbs sampling.

    A training instance owns its counts and learns a prior vector and
    topic-word distributions. An evaluation instance is built from a
    ModelSnapshot of a trained one: it resamples only the even token positions
    of each document against the frozen topic-word distributions and scores
    the odd positions.

    With ``params.constrained`` set, documents can be tied by must-link and
    cannot-link relations which add a log-potential to every topic's score.

    Key responsibilities:
    - Owns the corpus, the topic store and the random generator
    - Runs the unassign -> score -> sample -> assign protocol per token
    - Tracks likelihood, perplexity and topic coherence
    """

    def __init__(
        self,
        params: LDAParams,
        snapshot: Optional[ModelSnapshot] = None,
        *,
        seed: Optional[int] = None,
        metrics_sink: Optional[MetricsSink] = None,
    ):
        """
        Initialize a sampler.

        Args:
            params: Run configuration.
            snapshot: Trained model to evaluate against. None builds a
                training instance.
            seed: Random seed; overrides ``params.seed``.
            metrics_sink: Receiver of per-iteration metrics. Defaults to a
                file sink when ``params.metrics_path`` is set.
        """
        self.params = params
        self.mode: SamplingMode = TRAIN if snapshot is None else TEST

        K, V = params.num_topics, params.num_vocab
        self._corpus = Corpus(K, V)
        self._topics = TopicStore(K, V)
        self._rng = np.random.default_rng(params.seed if seed is None else seed)
        self._potential = get_potential(params.potential, params.floor)

        if snapshot is None:
            self.alpha = np.full(K, params.alpha, dtype=np.float64)
            self.phi = np.zeros((K, V))
        else:
            if snapshot.num_topics != K or snapshot.num_vocab != V:
                raise ValueError(
                    f"Snapshot shape ({snapshot.num_topics}, {snapshot.num_vocab}) "
                    f"does not match parameters ({K}, {V})"
                )
            snapshot = snapshot.copy()
            self.alpha = snapshot.alpha
            self.phi = snapshot.phi
        self.theta = np.zeros((0, K))

        if metrics_sink is None and params.metrics_path:
            metrics_sink = MetricsFileSink(params.metrics_path)
        self._metrics_sink = metrics_sink

        self._update_denom = 0.0
        self._num_heldout = 0
        self._iteration = 0
        self._initialized = False

        self.log_likelihood = float("nan")
        self.perplexity = float("nan")
        self.topic_coherence = np.zeros(K)
        self.metrics_history: List[IterationMetrics] = []

    @classmethod
    def from_snapshot(
        cls,
        snapshot: ModelSnapshot,
        params: LDAParams,
        **kwargs,
    ) -> "GibbsLDA":
        """Build an evaluation instance from a trained model's snapshot."""
        return cls(params, snapshot=snapshot, **kwargs)

    def __repr__(self) -> str:
        status = "initialized" if self._initialized else "not initialized"
        return (
            f"GibbsLDA({self.mode.name}, {status}, "
            f"docs={self.num_docs}, topics={self.params.num_topics})"
        )

    # ----------------------------
    # Helper methods
    # ----------------------------

    def _require_initialized(self) -> None:
        """Raise error if initialize() has not run."""
        if not self._initialized:
            raise NotInitializedError("Model must be initialized before this operation")

    def _require_unsealed(self) -> None:
        if self._initialized:
            raise CLDAError("Cannot change the corpus after initialization")

    def _require_constrained(self) -> None:
        if not self.params.constrained:
            raise CLDAError("Link constraints require params.constrained=True")

    @property
    def is_training(self) -> bool:
        return not self.mode.frozen_phi

    @property
    def num_docs(self) -> int:
        return len(self._corpus)

    @property
    def num_words(self) -> int:
        """Number of tokens in the corpus."""
        return self._corpus.num_tokens

    @property
    def corpus(self) -> Corpus:
        return self._corpus

    @property
    def topics(self) -> TopicStore:
        return self._topics

    def doc(self, doc_id: int) -> Document:
        return self._corpus[doc_id]

    # ----------------------------
    # Corpus construction
    # ----------------------------

    def add_document(self, words: Sequence[int]) -> int:
        """
        Append a document of word ids.

        Args:
            words: Ordered word ids in [0, V).

        Returns:
            Document id.
        """
        self._require_unsealed()
        return self._corpus.append(words)

    def add_documents(self, docs: Iterable[Sequence[int]]) -> List[int]:
        self._require_unsealed()
        return self._corpus.extend(docs)

    def add_must_link(self, doc1: int, doc2: int) -> None:
        self._require_constrained()
        self._corpus.add_must_link(doc1, doc2)

    def add_cannot_link(self, doc1: int, doc2: int) -> None:
        self._require_constrained()
        self._corpus.add_cannot_link(doc1, doc2)

    # ----------------------------
    # Initialization
    # ----------------------------

    def initialize(self, topic_assignments: Optional[Sequence[Sequence[int]]] = None) -> None:
        """
        Assign initial topics and compute the starting metrics.

        Args:
            topic_assignments: Optional per-document topic ids indexed by token
                position. Positions missing from a row, or holding a negative
                value, get a uniformly random topic. A topic id >= n_topics
                raises ValueError before any token is assigned.
        """
        if self._initialized:
            raise CLDAError("Model is already initialized")
        if topic_assignments is not None and len(topic_assignments) > self.num_docs:
            raise ValueError(
                f"Got topic assignments for {len(topic_assignments)} documents, "
                f"corpus has {self.num_docs}"
            )

        K = self.params.num_topics
        for doc_id, row in enumerate(topic_assignments or ()):
            bad = [t for t in row if t >= K]
            if bad:
                raise ValueError(
                    f"document {doc_id}: topic {bad[0]} out of range [0, {K})"
                )

        self._update_denom = prior_update_denominator(
            (self.mode.sample_size(len(doc)) for doc in self._corpus),
            self.params.alpha,
            K,
        )
        self._num_heldout = sum(self.mode.heldout_size(len(doc)) for doc in self._corpus)
        if self._num_heldout == 0:
            logger.warning("No held-out tokens to score; perplexity is undefined")

        for doc_id, doc in enumerate(self._corpus):
            given: Sequence[int] = ()
            if topic_assignments is not None and doc_id < len(topic_assignments):
                given = topic_assignments[doc_id]
            for token in self.mode.sample_positions(len(doc)):
                topic = int(self._rng.integers(K))
                if token < len(given) and given[token] >= 0:
                    topic = int(given[token])
                self._assign(doc, token, topic)

        self._initialized = True
        self._log_header()
        self._compute_metrics()
        if self._metrics_sink is not None:
            self._metrics_sink.write_header()

    def _log_header(self) -> None:
        logger.info(
            "Running %s (%s): #docs: %d, #tokens: %d, %s",
            type(self).__name__,
            self.mode.name,
            self.num_docs,
            self.num_words,
            self.params.describe(),
        )

    # ----------------------------
    # Sampling
    # ----------------------------

    def sample(self, num_iters: int, burn_in: int = 0) -> None:
        """
        Run Gibbs sweeps over the corpus.

        Args:
            num_iters: Number of sweeps.
            burn_in: Leading sweeps whose metrics are not sent to the sink.
        """
        self._require_initialized()
        for local_iter in range(num_iters):
            self._iteration += 1
            for doc_id in range(self.num_docs):
                self._sample_doc(doc_id)
            self._compute_metrics()

            recorded = local_iter >= burn_in
            self.metrics_history.append(
                IterationMetrics(
                    iteration=self._iteration,
                    log_likelihood=self.log_likelihood,
                    perplexity=self.perplexity,
                    recorded=recorded,
                )
            )
            if recorded and self._metrics_sink is not None:
                self._metrics_sink.append(self.log_likelihood, self.perplexity)
            if self.params.verbose:
                logger.info(
                    "<%d>\tLog-LLD: %.4f\tPPX: %.4f",
                    self._iteration,
                    self.log_likelihood,
                    self.perplexity,
                )

            if (
                self.is_training
                and self.params.update_alpha
                and self._iteration % self.params.update_alpha_interval == 0
            ):
                self.update_hyperparameters()

        if self.is_training and self.params.verbose:
            for topic in range(self.params.num_topics):
                words = " ".join(w for w, _ in self.top_words_by_freq(topic, 10))
                logger.info("Topic %d: %s", topic, words)
        self.compute_topic_coherence()
        logger.info(
            "Finished %s (%s): Log-LLD: %.4f, PPX: %.4f, coherence: %s",
            type(self).__name__,
            self.mode.name,
            self.log_likelihood,
            self.perplexity,
            np.round(self.topic_coherence, 4).tolist(),
        )

    def _sample_doc(self, doc_id: int) -> None:
        doc = self._corpus[doc_id]
        for token in self.mode.sample_positions(len(doc)):
            old_topic = self._unassign(doc, token)
            new_topic = self._sample_topic(doc, token, old_topic)
            self._assign(doc, token, new_topic)

    def _unassign(self, doc: Document, token: int) -> int:
        topic = doc.unassign_topic(token)
        self._topics.remove_word(topic, doc.words[token])
        return topic

    def _assign(self, doc: Document, token: int, topic: int) -> None:
        doc.assign_topic(token, topic)
        self._topics.add_word(topic, doc.words[token])

    def _sample_topic(self, doc: Document, token: int, old_topic: int) -> int:
        scores = self.topic_scores(doc, int(doc.words[token]))
        new_topic = select_log_discrete(scores, self._rng)
        if new_topic == -1:
            logger.warning(
                "Degenerate topic distribution, keeping topic %d; scores: %s",
                old_topic,
                scores.tolist(),
            )
            new_topic = old_topic
        return new_topic

    def topic_scores(self, doc: Document, word: int) -> np.ndarray:
        """
        Unnormalized log-probability of each topic for one token of a document.

        The token must be unassigned when this is called.

        Args:
            doc: Owning document.
            word: The token's word id.

        Returns:
            Array of shape (n_topics,).
        """
        doc_term = self.alpha + doc.topic_counts
        if self.mode.frozen_phi:
            word_term = self.phi[:, word]
        else:
            beta = self.params.beta
            word_term = (beta + self._topics.word_count_matrix[:, word]) / (
                beta * self.params.num_vocab + self._topics.totals
            )
        with np.errstate(divide="ignore"):
            scores = np.log(doc_term * word_term)
        if self.params.constrained and doc.links:
            scores = scores + self.log_potential(doc)
        return scores

    def log_potential(self, doc: Document) -> np.ndarray:
        """
        Constraint log-potential of every topic for a document.

        Must-linked documents add their potential, cannot-linked ones subtract it.

        Args:
            doc: Document whose links are read.

        Returns:
            Array of shape (n_topics,); zeros for a document without links.
        """
        total = np.zeros(self.params.num_topics)
        if doc.links is None:
            return total
        for other in doc.links.must_link:
            linked = self._corpus[other]
            total += self._potential(linked.topic_counts, len(linked))
        for other in doc.links.cannot_link:
            linked = self._corpus[other]
            total -= self._potential(linked.topic_counts, len(linked))
        return total

    # ----------------------------
    # Hyperparameters
    # ----------------------------

    def update_hyperparameters(self) -> None:
        """Re-estimate the prior vector with one fixed-point step (training only)."""
        self._require_initialized()
        if not self.is_training:
            raise CLDAError("The prior is only re-estimated in training mode")
        self.alpha = optimize_prior(
            self.alpha,
            self.doc_topic_counts(),
            self._update_denom,
            self.params.alpha * self.params.num_topics,
        )
        logger.info("optimized alpha %s", self.alpha.tolist())

    # ----------------------------
    # Metrics
    # ----------------------------

    def _compute_metrics(self) -> None:
        self.theta = compute_theta(
            self._corpus,
            self.alpha,
            self.params.alpha * self.params.num_topics,
            self.mode,
        )
        if not self.mode.frozen_phi:
            self.phi = compute_phi(self._topics, self.params.beta)
        self.log_likelihood = log_likelihood(self._corpus, self.theta, self.phi, self.mode)
        self.perplexity = perplexity(self.log_likelihood, self._num_heldout)

    def compute_topic_coherence(self) -> np.ndarray:
        """
        Score every topic's top words by co-document frequency over the corpus.

        Returns:
            Array of shape (n_topics,), also stored on ``topic_coherence``.
        """
        self._require_initialized()
        self.topic_coherence = topic_coherence(
            self._corpus, self.phi, self.params.num_top_words
        )
        return self.topic_coherence.copy()

    def metrics_frame(self) -> pd.DataFrame:
        """
        Per-iteration metrics.

        Returns:
            DataFrame with columns iteration, log_likelihood, perplexity, recorded.
        """
        return pd.DataFrame(
            [
                {
                    "iteration": m.iteration,
                    "log_likelihood": m.log_likelihood,
                    "perplexity": m.perplexity,
                    "recorded": m.recorded,
                }
                for m in self.metrics_history
            ],
            columns=["iteration", "log_likelihood", "perplexity", "recorded"],
        )

    # ----------------------------
    # Model snapshot
    # ----------------------------

    def snapshot(self) -> ModelSnapshot:
        """
        Copy of the prior vector and topic-word distributions.

        Returns:
            ModelSnapshot sharing no arrays with this instance.
        """
        self._require_initialized()
        if not self.mode.frozen_phi:
            self.phi = compute_phi(self._topics, self.params.beta)
        return ModelSnapshot(alpha=self.alpha.copy(), phi=self.phi.copy())

    # ----------------------------
    # Accessors
    # ----------------------------

    def doc_topic_dist(self) -> np.ndarray:
        """Document-topic distributions (n_docs, n_topics)."""
        self._require_initialized()
        return self.theta.copy()

    def topic_vocab_dist(self) -> np.ndarray:
        """Topic-word distributions (n_topics, n_vocab)."""
        self._require_initialized()
        return self.phi.copy()

    def doc_topic_counts(self) -> np.ndarray:
        """Number of tokens of each document assigned to each topic (n_docs, n_topics)."""
        if self.num_docs == 0:
            return np.zeros((0, self.params.num_topics), dtype=np.int64)
        return np.vstack([doc.topic_counts for doc in self._corpus])

    def token_topic_assign(self) -> List[np.ndarray]:
        """Per-document topic of every token; -1 marks tokens that are never sampled."""
        return [doc.topic_assigns.copy() for doc in self._corpus]

    def top_words_by_freq(self, topic: int, n: int = 10) -> List[Tuple[str, float]]:
        """
        Topic's most frequently assigned words.

        Args:
            topic: Topic id.
            n: Number of words.

        Returns:
            List of (word, count) tuples.
        """
        return top_words(self._topics.word_counts(topic), self.params.vocab, n)

    def top_words_by_weight(self, topic: int, n: int = 10) -> List[Tuple[str, float]]:
        """
        Topic's highest-probability words.

        Args:
            topic: Topic id.
            n: Number of words.

        Returns:
            List of (word, probability) tuples.
        """
        self._require_initialized()
        if not 0 <= topic < self.params.num_topics:
            raise IndexError(f"topic {topic} out of range [0, {self.params.num_topics})")
        return top_words(self.phi[topic], self.params.vocab, n)

    def topic_info(self, top_words_n: int = 10) -> pd.DataFrame:
        """
        Get summary information for topics.

        Args:
            top_words_n: Number of top words to include.

        Returns:
            DataFrame with topic_id, alpha, tokens, coherence and top_words.
        """
        self._require_initialized()
        rows = []
        for topic in range(self.params.num_topics):
            words = self.top_words_by_weight(topic, top_words_n)
            rows.append(
                {
                    "topic_id": topic,
                    "alpha": float(self.alpha[topic]),
                    "tokens": self._topics.total(topic),
                    "coherence": float(self.topic_coherence[topic]),
                    "top_words": ", ".join(w for w, _ in words),
                }
            )
        return pd.DataFrame(rows)

"""Data structures for constrained LDA."""

from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional, Sequence, Set
import numpy as np


POTENTIAL_FORMS = ("floor", "ratio")


@dataclass(frozen=True)
class LDAParams:
    """Run configuration, fixed for the lifetime of a sampler."""

    num_topics: int
    """Number of topics."""

    vocab: Sequence[str]
    """Vocabulary list; a word id is a position in this list."""

    alpha: float = 1.0
    """Symmetric document-topic prior (per topic) used to seed the prior vector."""

    beta: float = 0.1
    """Symmetric topic-word prior."""

    constrained: bool = False
    """Whether must-link/cannot-link potentials are applied."""

    potential: str = "floor"
    """Constraint potential form: 'floor' or 'ratio'."""

    floor: float = 0.5
    """Lower clamp on linked-document topic counts for the 'floor' potential."""

    num_top_words: int = 10
    """Number of top words per topic used for coherence."""

    update_alpha: bool = False
    """Whether to re-estimate the prior vector during training."""

    update_alpha_interval: int = 10
    """Iterations between prior re-estimations."""

    verbose: bool = True
    """Log per-iteration metrics and top words at INFO level."""

    metrics_path: Optional[str] = None
    """Optional ';'-separated file receiving per-iteration metrics."""

    seed: Optional[int] = None
    """Seed for the sampler's random generator."""

    def __post_init__(self):
        object.__setattr__(self, "vocab", tuple(self.vocab))
        if self.num_topics < 1:
            raise ValueError("num_topics must be >= 1")
        if len(self.vocab) < 1:
            raise ValueError("vocab must contain at least one word")
        if self.alpha <= 0 or self.beta <= 0:
            raise ValueError("alpha and beta must be > 0")
        if self.potential not in POTENTIAL_FORMS:
            raise ValueError(f"Unknown potential form: {self.potential}")
        if self.floor <= 0:
            raise ValueError("floor must be > 0")
        if self.num_top_words < 1:
            raise ValueError("num_top_words must be >= 1")
        if self.update_alpha_interval < 1:
            raise ValueError("update_alpha_interval must be >= 1")

    @property
    def num_vocab(self) -> int:
        """Vocabulary size."""
        return len(self.vocab)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "LDAParams":
        """
        Build parameters from a plain mapping (e.g. parsed JSON).

        Args:
            config: Mapping of field names to values.

        Returns:
            LDAParams instance.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(f"Unknown parameters: {unknown}")
        return cls(**dict(config))

    def describe(self) -> str:
        """One-line summary used in run headers."""
        parts = [
            f"#topics: {self.num_topics}",
            f"#vocab: {self.num_vocab}",
            f"alpha: {self.alpha}",
            f"beta: {self.beta}",
        ]
        if self.update_alpha:
            parts.append(f"update alpha every {self.update_alpha_interval} iters")
        if self.constrained:
            parts.append(f"potential: {self.potential}")
            if self.potential == "floor":
                parts.append(f"floor: {self.floor}")
        return ", ".join(parts)


@dataclass(frozen=True)
class SamplingMode:
    """Which token positions are resampled and scored, and whether phi is frozen."""

    name: str
    stride: int
    sample_offset: int
    heldout_offset: int
    frozen_phi: bool

    def sample_positions(self, doc_length: int) -> range:
        """Token positions resampled in this mode."""
        return range(self.sample_offset, doc_length, self.stride)

    def heldout_positions(self, doc_length: int) -> range:
        """Token positions scored by the likelihood in this mode."""
        return range(self.heldout_offset, doc_length, self.stride)

    def sample_size(self, doc_length: int) -> int:
        return len(self.sample_positions(doc_length))

    def heldout_size(self, doc_length: int) -> int:
        return len(self.heldout_positions(doc_length))


TRAIN = SamplingMode(name="train", stride=1, sample_offset=0, heldout_offset=0, frozen_phi=False)
TEST = SamplingMode(name="test", stride=2, sample_offset=0, heldout_offset=1, frozen_phi=True)


@dataclass(frozen=True)
class ModelSnapshot:
    """The portable part of a trained model: prior vector and word distributions."""

    alpha: np.ndarray
    """Per-topic prior vector (n_topics,)."""

    phi: np.ndarray
    """Topic-word distribution matrix (n_topics, n_vocab)."""

    def __post_init__(self):
        alpha = np.array(self.alpha, dtype=np.float64)
        phi = np.array(self.phi, dtype=np.float64)
        if alpha.ndim != 1 or phi.ndim != 2 or phi.shape[0] != alpha.shape[0]:
            raise ValueError(
                f"Inconsistent snapshot shapes: alpha {alpha.shape}, phi {phi.shape}"
            )
        if not np.all(alpha > 0):
            raise ValueError("Snapshot prior entries must be strictly positive")
        if not np.allclose(phi.sum(axis=1), 1.0, atol=1e-6):
            raise ValueError("Snapshot phi rows must sum to 1")
        object.__setattr__(self, "alpha", alpha)
        object.__setattr__(self, "phi", phi)

    @property
    def num_topics(self) -> int:
        return self.phi.shape[0]

    @property
    def num_vocab(self) -> int:
        return self.phi.shape[1]

    def copy(self) -> "ModelSnapshot":
        """Deep copy; arrays are never shared between instances."""
        return ModelSnapshot(alpha=self.alpha.copy(), phi=self.phi.copy())


@dataclass(frozen=True)
class IterationMetrics:
    """Quality metrics recorded after one sampling iteration."""

    iteration: int
    log_likelihood: float
    perplexity: float
    recorded: bool = True
    """False while the iteration was still inside the burn-in window."""


@dataclass
class DocumentLinks:
    """Must-link / cannot-link payload of a constrained document."""

    must_link: Set[int] = field(default_factory=set)
    cannot_link: Set[int] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.must_link or self.cannot_link)

"""
Constrained LDA package.

Latent Dirichlet Allocation trained and evaluated with collapsed Gibbs
sampling, with optional must-link / cannot-link document constraints,
adaptive priors, perplexity tracking and topic coherence.
"""

from .core import GibbsLDA
from .data_structures import (
    LDAParams,
    ModelSnapshot,
    IterationMetrics,
    DocumentLinks,
    SamplingMode,
    TRAIN,
    TEST,
)
from .stores import Corpus, Document, TopicStore
from .components import ratio_potential, floor_potential, select_log_discrete
from .evaluation import topic_coherence, codocument_frequency_matrix
from .utils import (
    read_vocab,
    read_corpus,
    read_raw_corpus,
    read_constraints,
    apply_constraints,
    read_topic_assignments,
    corpus_from_texts,
    default_vectorizer,
    save_snapshot,
    load_snapshot,
    MetricsFileSink,
)
from .exceptions import CLDAError, NotInitializedError, CorpusFormatError
from .visualization import visualize_metrics, visualize_top_words, visualize_doc_topics

__version__ = "0.1.0"

__all__ = [
    "GibbsLDA",
    "LDAParams",
    "ModelSnapshot",
    "IterationMetrics",
    "DocumentLinks",
    "SamplingMode",
    "TRAIN",
    "TEST",
    "Corpus",
    "Document",
    "TopicStore",
    "ratio_potential",
    "floor_potential",
    "select_log_discrete",
    "topic_coherence",
    "codocument_frequency_matrix",
    "read_vocab",
    "read_corpus",
    "read_raw_corpus",
    "read_constraints",
    "apply_constraints",
    "read_topic_assignments",
    "corpus_from_texts",
    "default_vectorizer",
    "save_snapshot",
    "load_snapshot",
    "MetricsFileSink",
    "CLDAError",
    "NotInitializedError",
    "CorpusFormatError",
    "visualize_metrics",
    "visualize_top_words",
    "visualize_doc_topics",
]

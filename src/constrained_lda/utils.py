"""Readers, writers and corpus helpers for constrained LDA."""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd
from sklearn.feature_extraction.text import CountVectorizer

from .data_structures import ModelSnapshot
from .exceptions import CorpusFormatError

if TYPE_CHECKING:
    from .core import GibbsLDA


MUST_LINK = "must-link"
CANNOT_LINK = "cannot-link"

_RELATION_TAGS = {
    "M": MUST_LINK,
    "must-link": MUST_LINK,
    "C": CANNOT_LINK,
    "cannot-link": CANNOT_LINK,
}


# =====================================================================
# Vocabulary & corpus
# =====================================================================


def read_vocab(path: str) -> List[str]:
    """
    Read a vocabulary file with one word per line.

    Args:
        path: Vocabulary file path.

    Returns:
        Word list; a word's id is its line number.
    """
    with open(path, "r", encoding="utf-8") as f:
        vocab = [line.strip() for line in f if line.strip()]
    if len(set(vocab)) != len(vocab):
        raise CorpusFormatError(f"{path}: vocabulary contains duplicate words")
    return vocab


def _parse_indexed_line(line: str, lineno: int, num_vocab: Optional[int]) -> List[int]:
    fields = line.split()
    if not fields:
        return []
    try:
        if ":" not in fields[0] and all(":" in f for f in fields[1:]):
            # LDA-C: "<n_unique> <id>:<count> ..."
            n_unique = int(fields[0])
            pairs = [f.split(":") for f in fields[1:]]
            if n_unique != len(pairs) or any(len(p) != 2 for p in pairs):
                raise ValueError("term count does not match id:count pairs")
            words: List[int] = []
            for word, count in pairs:
                if int(count) < 0:
                    raise ValueError(f"negative count in pair {word}:{count}")
                words.extend([int(word)] * int(count))
        elif any(":" in f for f in fields):
            raise ValueError("mixed plain ids and id:count pairs")
        else:
            words = [int(f) for f in fields]
    except ValueError as err:
        raise CorpusFormatError(f"line {lineno}: {err}") from err
    if num_vocab is not None:
        bad = [w for w in words if w < 0 or w >= num_vocab]
        if bad:
            raise CorpusFormatError(f"line {lineno}: word id {bad[0]} out of range [0, {num_vocab})")
    return words


def read_corpus(path: str, num_vocab: Optional[int] = None) -> List[List[int]]:
    """
    Read a pre-indexed corpus, one document per line.

    Lines are either LDA-C records (``N id:count id:count ...``, each pair
    expanded to ``count`` copies of ``id``) or plain whitespace-separated word
    ids. A blank line is an empty document. A line holding a single integer is
    read as an LDA-C record with no pairs, so ``0`` is an empty document and a
    one-token document must be written in LDA-C form (``1 id:1``). Negative
    counts raise CorpusFormatError.

    Args:
        path: Corpus file path.
        num_vocab: Optional vocabulary size used to validate ids.

    Returns:
        List of word-id lists.
    """
    with open(path, "r", encoding="utf-8") as f:
        return [
            _parse_indexed_line(line, lineno, num_vocab)
            for lineno, line in enumerate(f, start=1)
        ]


def read_raw_corpus(path: str, vocab: Sequence[str]) -> List[List[int]]:
    """
    Read a raw-token corpus, one document per line.

    Tokens are split on whitespace and resolved through the vocabulary;
    unknown tokens are dropped.

    Args:
        path: Corpus file path.
        vocab: Vocabulary list.

    Returns:
        List of word-id lists.
    """
    index = {word: i for i, word in enumerate(vocab)}
    with open(path, "r", encoding="utf-8") as f:
        return [[index[t] for t in line.split() if t in index] for line in f]


def default_vectorizer() -> CountVectorizer:
    """
    Default CountVectorizer for building an LDA vocabulary.

    Returns:
        Configured CountVectorizer instance.
    """
    return CountVectorizer(
        ngram_range=(1, 1),
        min_df=2,
        max_df=0.9,
        stop_words='english',
    )


def corpus_from_texts(
    texts: Sequence[str],
    vectorizer: Optional[CountVectorizer] = None,
) -> Tuple[List[List[int]], List[str]]:
    """
    Tokenize raw texts into ordered word-id sequences.

    The vectorizer decides the vocabulary (stop words, document-frequency
    cut-offs); its analyzer gives the token order. Tokens outside the learned
    vocabulary are dropped.

    Args:
        texts: Raw documents.
        vectorizer: CountVectorizer to fit. Defaults to default_vectorizer().

    Returns:
        Tuple of (documents as word-id lists, vocabulary list).
    """
    vectorizer = vectorizer if vectorizer is not None else default_vectorizer()
    vectorizer.fit(texts)
    vocab = vectorizer.get_feature_names_out().tolist()
    index: Dict[str, int] = vectorizer.vocabulary_
    analyzer = vectorizer.build_analyzer()
    docs = [[int(index[t]) for t in analyzer(text) if t in index] for text in texts]
    return docs, vocab


# =====================================================================
# Constraints
# =====================================================================


@dataclass(frozen=True)
class ConstraintRecord:
    """One parsed ``<relation> <doc1> <doc2>`` line."""

    relation: str
    doc1: int
    doc2: int


def read_constraints(path: str) -> List[ConstraintRecord]:
    """
    Read link constraints, one ``<tag> <doc1> <doc2>`` record per line.

    Tags ``M``/``must-link`` and ``C``/``cannot-link`` are recognized; records
    with any other tag are discarded. A recognized record that does not have
    three fields or whose ids are not integers raises CorpusFormatError.

    Args:
        path: Constraint file path.

    Returns:
        List of ConstraintRecord.
    """
    records: List[ConstraintRecord] = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            fields = line.split()
            if not fields:
                continue
            relation = _RELATION_TAGS.get(fields[0])
            if relation is None:
                continue
            if len(fields) != 3:
                raise CorpusFormatError(f"line {lineno}: expected '<relation> <doc1> <doc2>'")
            try:
                doc1, doc2 = int(fields[1]), int(fields[2])
            except ValueError as err:
                raise CorpusFormatError(f"line {lineno}: {err}") from err
            records.append(ConstraintRecord(relation, doc1, doc2))
    return records


def apply_constraints(model: "GibbsLDA", records: Iterable[ConstraintRecord]) -> None:
    """
    Declare parsed constraints on a model's corpus.

    All document ids are checked before any link is added.

    Args:
        model: Constrained GibbsLDA instance.
        records: Parsed constraint records.
    """
    records = list(records)
    for rec in records:
        for doc_id in (rec.doc1, rec.doc2):
            if doc_id < 0 or doc_id >= model.num_docs:
                raise CorpusFormatError(
                    f"constraint {rec}: document {doc_id} out of range [0, {model.num_docs})"
                )
    for rec in records:
        if rec.relation == MUST_LINK:
            model.add_must_link(rec.doc1, rec.doc2)
        else:
            model.add_cannot_link(rec.doc1, rec.doc2)


# =====================================================================
# Topic assignments
# =====================================================================


def read_topic_assignments(path: str) -> List[List[int]]:
    """
    Read initial topic assignments, one line of topic ids per document.

    Args:
        path: Assignment file path.

    Returns:
        List of topic-id lists.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            return [[int(t) for t in line.split()] for line in f]
        except ValueError as err:
            raise CorpusFormatError(f"{path}: {err}") from err


# =====================================================================
# Model snapshot
# =====================================================================


def save_snapshot(path: str, snapshot: ModelSnapshot) -> None:
    """
    Write a snapshot as JSON with exactly the keys 'alpha' and 'phi'.

    Args:
        path: Output file path.
        snapshot: Snapshot to store.
    """
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"alpha": snapshot.alpha.tolist(), "phi": snapshot.phi.tolist()}, f)


def load_snapshot(path: str) -> ModelSnapshot:
    """
    Read a snapshot written by save_snapshot().

    Args:
        path: Snapshot file path.

    Returns:
        ModelSnapshot.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as err:
            raise CorpusFormatError(f"{path}: {err}") from err
    if not isinstance(data, dict) or "alpha" not in data or "phi" not in data:
        raise CorpusFormatError(f"{path}: snapshot needs 'alpha' and 'phi'")
    try:
        return ModelSnapshot(alpha=np.asarray(data["alpha"]), phi=np.asarray(data["phi"]))
    except (TypeError, ValueError) as err:
        raise CorpusFormatError(f"{path}: {err}") from err


# =====================================================================
# Metrics & result writers
# =====================================================================


class MetricsFileSink:
    """Appends per-iteration metrics to a ';'-separated file."""

    HEADER = "logLikelihood;perplexity"

    def __init__(self, path: str):
        self.path = path

    def write_header(self) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(self.HEADER + "\n")

    def append(self, log_likelihood: float, perplexity: float) -> None:
        row = pd.DataFrame([[log_likelihood, perplexity]])
        row.to_csv(self.path, mode="a", sep=";", header=False, index=False)

    def __repr__(self) -> str:
        return f"MetricsFileSink('{self.path}')"


def read_metrics(path: str) -> pd.DataFrame:
    """Load a metrics file written by MetricsFileSink."""
    return pd.read_csv(path, sep=";")


def write_top_words(path: str, model: "GibbsLDA", n: int = 10) -> None:
    """
    Write every topic's most frequent words, one topic per line.

    Args:
        path: Output file path.
        model: Sampler to read from.
        n: Words per topic.
    """
    with open(path, "w", encoding="utf-8") as f:
        for topic in range(model.params.num_topics):
            words = "   ".join(f"{w}:{c}" for w, c in model.top_words_by_freq(topic, n))
            f.write(f"Topic {topic}:   {words}\n")


def write_doc_topic_dist(path: str, model: "GibbsLDA") -> None:
    np.savetxt(path, model.doc_topic_dist(), delimiter=" ")


def write_doc_topic_counts(path: str, model: "GibbsLDA") -> None:
    np.savetxt(path, model.doc_topic_counts(), fmt="%d", delimiter=" ")


def write_token_topic_assign(path: str, model: "GibbsLDA") -> None:
    """Write each document's token topics on one line; -1 marks unsampled tokens."""
    with open(path, "w", encoding="utf-8") as f:
        for assigns in model.token_topic_assign():
            f.write(" ".join(str(t) for t in assigns.tolist()) + "\n")


def write_coherence(path: str, model: "GibbsLDA") -> None:
    """Append the current topic coherences as one ';'-separated line."""
    with open(path, "a", encoding="utf-8") as f:
        f.write(";".join(repr(float(c)) for c in model.topic_coherence) + "\n")

"""Count bookkeeping for documents, the corpus and topics."""

from typing import Iterable, Iterator, List, Optional, Sequence
import numpy as np
from scipy import sparse

from .data_structures import DocumentLinks


UNASSIGNED = -1


def _check_index(value: int, size: int, what: str) -> int:
    """Reject ids outside [0, size); numpy would silently wrap negatives."""
    value = int(value)
    if value < 0 or value >= size:
        raise IndexError(f"{what} {value} out of range [0, {size})")
    return value


# =====================================================================
# Documents
# =====================================================================


class Document:
    """
    One document: its word ids, their topic assignments, and per-topic counts.

    A document is Plain when ``links`` is None and Constrained once a
    must-link or cannot-link relation has been declared for it.
    """

    def __init__(self, words: Sequence[int], num_topics: int, num_vocab: int):
        """
        Initialize a document.

        Args:
            words: Ordered word ids.
            num_topics: Number of topics.
            num_vocab: Vocabulary size, used to validate word ids.
        """
        self.words = np.array(words, dtype=np.int64).reshape(-1)
        if self.words.size and (self.words.min() < 0 or self.words.max() >= num_vocab):
            bad = self.words[(self.words < 0) | (self.words >= num_vocab)][0]
            raise IndexError(f"word id {bad} out of range [0, {num_vocab})")
        self.num_topics = num_topics
        self.topic_assigns = np.full(self.words.shape[0], UNASSIGNED, dtype=np.int64)
        self.topic_counts = np.zeros(num_topics, dtype=np.int64)
        self.links: Optional[DocumentLinks] = None
        self._word_set = frozenset(self.words.tolist())

    def __len__(self) -> int:
        return int(self.words.shape[0])

    def __repr__(self) -> str:
        kind = "constrained" if self.links is not None else "plain"
        return f"Document({kind}, tokens={len(self)}, assigned={self.num_assigned})"

    @property
    def num_assigned(self) -> int:
        """Number of tokens currently carrying a topic."""
        return int((self.topic_assigns != UNASSIGNED).sum())

    def word(self, token: int) -> int:
        return int(self.words[_check_index(token, len(self), "token")])

    def topic_assign(self, token: int) -> int:
        return int(self.topic_assigns[_check_index(token, len(self), "token")])

    def topic_count(self, topic: int) -> int:
        return int(self.topic_counts[_check_index(topic, self.num_topics, "topic")])

    def contains_word(self, word: int) -> bool:
        return int(word) in self._word_set

    def assign_topic(self, token: int, topic: int) -> None:
        """
        Attach a topic to an unassigned token.

        Args:
            token: Token position.
            topic: Topic id.
        """
        token = _check_index(token, len(self), "token")
        topic = _check_index(topic, self.num_topics, "topic")
        if self.topic_assigns[token] != UNASSIGNED:
            raise ValueError(f"token {token} is already assigned to a topic")
        self.topic_assigns[token] = topic
        self.topic_counts[topic] += 1

    def unassign_topic(self, token: int) -> int:
        """
        Detach a token's topic.

        Args:
            token: Token position.

        Returns:
            The topic the token carried.
        """
        token = _check_index(token, len(self), "token")
        topic = int(self.topic_assigns[token])
        if topic == UNASSIGNED:
            raise ValueError(f"token {token} is not assigned to a topic")
        self.topic_assigns[token] = UNASSIGNED
        self.topic_counts[topic] -= 1
        return topic

    def _links(self) -> DocumentLinks:
        if self.links is None:
            self.links = DocumentLinks()
        return self.links


class Corpus:
    """Ordered collection of documents indexed by document id."""

    def __init__(self, num_topics: int, num_vocab: int):
        self.num_topics = num_topics
        self.num_vocab = num_vocab
        self._docs: List[Document] = []

    def __len__(self) -> int:
        return len(self._docs)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._docs)

    def __getitem__(self, doc_id: int) -> Document:
        return self._docs[_check_index(doc_id, len(self._docs), "document")]

    def __repr__(self) -> str:
        return f"Corpus(docs={len(self)}, tokens={self.num_tokens})"

    @property
    def num_tokens(self) -> int:
        return sum(len(doc) for doc in self._docs)

    def append(self, words: Sequence[int]) -> int:
        """
        Add a document.

        Args:
            words: Ordered word ids.

        Returns:
            The new document's id.
        """
        self._docs.append(Document(words, self.num_topics, self.num_vocab))
        return len(self._docs) - 1

    def extend(self, docs: Iterable[Sequence[int]]) -> List[int]:
        return [self.append(words) for words in docs]

    def add_must_link(self, doc1: int, doc2: int) -> None:
        """Declare a symmetric must-link between two documents."""
        first, second = self[doc1], self[doc2]
        first._links().must_link.add(int(doc2))
        second._links().must_link.add(int(doc1))

    def add_cannot_link(self, doc1: int, doc2: int) -> None:
        """Declare a symmetric cannot-link between two documents."""
        first, second = self[doc1], self[doc2]
        first._links().cannot_link.add(int(doc2))
        second._links().cannot_link.add(int(doc1))

    def word_document_matrix(self) -> sparse.csr_matrix:
        """
        Boolean document-word incidence matrix.

        Returns:
            Sparse matrix (n_docs, n_vocab); entry (d, w) is True when word w
            occurs in document d.
        """
        rows = []
        cols = []
        for doc_id, doc in enumerate(self._docs):
            unique_words = np.unique(doc.words)
            rows.append(np.full(unique_words.shape[0], doc_id, dtype=np.int64))
            cols.append(unique_words)
        if rows:
            row_idx = np.concatenate(rows)
            col_idx = np.concatenate(cols)
        else:
            row_idx = col_idx = np.zeros(0, dtype=np.int64)
        data = np.ones(row_idx.shape[0], dtype=bool)
        return sparse.csr_matrix(
            (data, (row_idx, col_idx)), shape=(len(self._docs), self.num_vocab)
        )


# =====================================================================
# Topics
# =====================================================================


class TopicStore:
    """
    Per-topic word counts and token totals.

    Row ``t`` of ``word_count_matrix`` is topic ``t``. The store does not know
    which token a count came from; callers keep exactly one outstanding
    assignment per token.
    """

    def __init__(self, num_topics: int, num_vocab: int):
        self.num_topics = num_topics
        self.num_vocab = num_vocab
        self.word_count_matrix = np.zeros((num_topics, num_vocab), dtype=np.int64)
        self.totals = np.zeros(num_topics, dtype=np.int64)

    def __len__(self) -> int:
        return self.num_topics

    def __repr__(self) -> str:
        return f"TopicStore(topics={self.num_topics}, tokens={int(self.totals.sum())})"

    def add_word(self, topic: int, word: int) -> None:
        topic = _check_index(topic, self.num_topics, "topic")
        word = _check_index(word, self.num_vocab, "word")
        self.word_count_matrix[topic, word] += 1
        self.totals[topic] += 1

    def remove_word(self, topic: int, word: int) -> None:
        topic = _check_index(topic, self.num_topics, "topic")
        word = _check_index(word, self.num_vocab, "word")
        if self.word_count_matrix[topic, word] <= 0:
            raise ValueError(f"topic {topic} holds no token of word {word}")
        self.word_count_matrix[topic, word] -= 1
        self.totals[topic] -= 1

    def word_count(self, topic: int, word: int) -> int:
        topic = _check_index(topic, self.num_topics, "topic")
        word = _check_index(word, self.num_vocab, "word")
        return int(self.word_count_matrix[topic, word])

    def total(self, topic: int) -> int:
        return int(self.totals[_check_index(topic, self.num_topics, "topic")])

    def word_counts(self, topic: int) -> np.ndarray:
        """Copy of one topic's word-count row."""
        return self.word_count_matrix[_check_index(topic, self.num_topics, "topic")].copy()

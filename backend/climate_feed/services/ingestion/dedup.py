"""
Near-duplicate suppression within one ingestion batch.

An article is a duplicate of one already in the batch when the title
similarity exceeds the threshold (0.8) and the two publish dates are less
than the window (24 hours) apart. The similarity metric is pluggable:

- exact:     1.0 for equal lowercased titles, else 0.0
- sequence:  difflib ratio over normalized titles
- token_set: Jaccard overlap of normalized title words
"""

import re
import threading
from datetime import timedelta
from difflib import SequenceMatcher
from typing import Callable, Iterable

from climate_feed.models.domain import Article

Similarity = Callable[[str, str], float]

DEFAULT_THRESHOLD = 0.8
DEFAULT_WINDOW = timedelta(hours=24)


def normalize_title(title: str) -> str:
    """Normalize title for fuzzy matching."""
    # Lowercase
    title = title.lower()

    # Remove punctuation
    title = re.sub(r"[^\w\s]", " ", title)

    # Normalize whitespace
    return " ".join(title.split())


def exact_similarity(a: str, b: str) -> float:
    return 1.0 if a.lower() == b.lower() else 0.0


def sequence_similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, normalize_title(a), normalize_title(b)).ratio()


def token_set_similarity(a: str, b: str) -> float:
    tokens_a = set(normalize_title(a).split())
    tokens_b = set(normalize_title(b).split())
    if not tokens_a and not tokens_b:
        return 1.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


SIMILARITY_STRATEGIES: dict[str, Similarity] = {
    "exact": exact_similarity,
    "sequence": sequence_similarity,
    "token_set": token_set_similarity,
}


def get_similarity(name: str) -> Similarity:
    try:
        return SIMILARITY_STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown similarity '{name}', expected one of {sorted(SIMILARITY_STRATEGIES)}"
        ) from None


class DeduplicationFilter:
    """
    Owns the batch of a single run and admits articles into it.

    ``admit`` performs the duplicate check and the append under one lock,
    so two concurrent callers cannot both admit near-duplicates.
    """

    def __init__(
        self,
        similarity: Similarity = exact_similarity,
        threshold: float = DEFAULT_THRESHOLD,
        window: timedelta = DEFAULT_WINDOW,
    ):
        self.similarity = similarity
        self.threshold = threshold
        self.window = window
        self._batch: list[Article] = []
        self._lock = threading.Lock()

    def is_duplicate(self, candidate: Article, batch: Iterable[Article]) -> bool:
        for existing in batch:
            if abs(candidate.date - existing.date) >= self.window:
                continue
            if self.similarity(candidate.title, existing.title) > self.threshold:
                return True
        return False

    def admit(self, candidate: Article) -> bool:
        """Append the candidate unless it duplicates the batch; return whether it was added."""
        with self._lock:
            if self.is_duplicate(candidate, self._batch):
                return False
            self._batch.append(candidate)
            return True

    @property
    def batch(self) -> list[Article]:
        with self._lock:
            return list(self._batch)

    def reset(self) -> None:
        with self._lock:
            self._batch = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._batch)

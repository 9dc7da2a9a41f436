"""Greedy segmentation of phrases into known units."""
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from legoplayer.models.network_models import PhrasePath, UnitEdge, edge_key

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize(text: Optional[str]) -> str:
    """Lowercase, trim and collapse whitespace."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.lower().strip())


def decompose(phrase: Optional[str], vocabulary: Mapping[str, str]) -> List[str]:
    """Split a phrase into the ordered ids of the units it is built from.

    At each position the longest run of words found in the vocabulary wins.
    A word that starts no known run is dropped and the cursor moves on by one.

    Args:
        phrase: Text to segment.
        vocabulary: Normalized unit text -> unit id.
    """
    words = normalize(phrase).split()
    if not words or not vocabulary:
        return []

    result: List[str] = []
    i = 0
    while i < len(words):
        for length in range(len(words) - i, 0, -1):
            unit_id = vocabulary.get(" ".join(words[i:i + length]))
            if unit_id is not None:
                result.append(unit_id)
                i += length
                break
        else:
            i += 1  # Skip unmatched word
    return result


def build_vocabulary(entries: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """Build the normalized text -> unit id lookup from (text, unit id) pairs."""
    vocabulary: Dict[str, str] = {}
    for text, unit_id in entries:
        key = normalize(text)
        if key:
            vocabulary[key] = unit_id
    return vocabulary


def adjacent_pairs(unit_ids: List[str]) -> List[Tuple[str, str]]:
    """Consecutive unit pairs of a decomposed phrase, skipping self pairs."""
    return [(a, b) for a, b in zip(unit_ids, unit_ids[1:]) if a != b]


def build_edge_set(phrases: Iterable[str], vocabulary: Mapping[str, str]) -> List[UnitEdge]:
    """Precompute the full co-occurrence edge set for a body of phrases."""
    counts: Dict[Tuple[str, str], int] = {}
    phrase_count = 0
    for phrase in phrases:
        pairs = adjacent_pairs(decompose(phrase, vocabulary))
        if pairs:
            phrase_count += 1
        for a, b in pairs:
            key = edge_key(a, b)
            counts[key] = counts.get(key, 0) + 1

    edges = [UnitEdge(source_id=a, target_id=b, count=count) for (a, b), count in counts.items()]
    edges.sort(key=lambda e: (-e.count, e.key))
    logger.debug(f"Built {len(edges)} unique connections from {phrase_count} phrases")
    return edges


class PhraseIndex:
    """Phrases of a course grouped by the units they contain.

    Repeated phrase texts are indexed once. Phrases with no known unit are
    left out.
    """

    def __init__(self):
        self.phrases: List[PhrasePath] = []
        self._by_unit: Dict[str, List[PhrasePath]] = {}

    @classmethod
    def build(cls, phrases: Iterable[str], vocabulary: Mapping[str, str]) -> "PhraseIndex":
        index = cls()
        seen = set()
        for phrase in phrases:
            key = normalize(phrase)
            if not key or key in seen:
                continue
            seen.add(key)
            unit_ids = decompose(phrase, vocabulary)
            if unit_ids:
                index.add(PhrasePath(target_text=phrase, unit_path=tuple(unit_ids)))
        logger.debug(f"Indexed {len(index.phrases)} phrases across {len(index._by_unit)} units")
        return index

    def add(self, path: PhrasePath) -> None:
        self.phrases.append(path)
        for unit_id in dict.fromkeys(path.unit_path):
            self._by_unit.setdefault(unit_id, []).append(path)

    def usage(self, unit_id: str) -> int:
        """Number of indexed phrases containing unit_id."""
        return len(self._by_unit.get(unit_id, ()))

    def phrases_for(self, unit_id: str, limit: int = 20) -> List[PhrasePath]:
        """Phrases containing unit_id, shortest unit path first."""
        paths = sorted(self._by_unit.get(unit_id, ()), key=lambda p: (len(p.unit_path), p.target_text))
        return paths[:limit]

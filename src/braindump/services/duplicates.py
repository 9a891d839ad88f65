"""Token-overlap duplicate detection for braindump lines."""

from dataclasses import dataclass
from typing import Sequence

from braindump.utils.text import tokenize

DEFAULT_DUPLICATE_THRESHOLD = 0.75


@dataclass
class DuplicatePair:
    """Two line positions (a_index < b_index) whose token sets overlap."""

    a_index: int
    b_index: int
    score: float


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """Jaccard overlap |A∩B| / |A∪B|, defined as 0 when both sets are empty."""
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def detect_duplicates(
    lines: Sequence[str], threshold: float = DEFAULT_DUPLICATE_THRESHOLD
) -> list[DuplicatePair]:
    """Compare every unordered pair of lines and report the similar ones.

    Pairs are only reported once, with the earlier line first. A pair whose
    score equals the threshold is included.

    Args:
        lines: Lines in braindump order
        threshold: Minimum Jaccard score for a pair to be reported

    Returns:
        Pairs ordered by (a_index, b_index); empty when nothing matches
    """
    token_sets = [tokenize(line) for line in lines]
    pairs: list[DuplicatePair] = []
    for i in range(len(token_sets)):
        for j in range(i + 1, len(token_sets)):
            score = jaccard_similarity(token_sets[i], token_sets[j])
            if score >= threshold:
                pairs.append(DuplicatePair(a_index=i, b_index=j, score=score))
    return pairs

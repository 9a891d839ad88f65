"""Recurrence of tasks across a user's earlier braindumps."""

from typing import Sequence

from braindump.models.braindump import HistoricalTask
from braindump.services.duplicates import DEFAULT_DUPLICATE_THRESHOLD, jaccard_similarity
from braindump.utils.text import tokenize


def compute_longevity(
    normalized_lines: Sequence[str],
    history: Sequence[HistoricalTask],
    threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
) -> list[int]:
    """Count earlier braindumps that contained a similar task.

    A braindump counts once per line even if several of its tasks match.

    Args:
        normalized_lines: Normalized content of the tasks being committed
        history: Tasks from previously committed braindumps
        threshold: Minimum Jaccard score for a historical task to match

    Returns:
        Longevity per line, in input order
    """
    history_tokens = [(item.braindump_id, tokenize(item.normalized)) for item in history]
    counts = []
    for line in normalized_lines:
        tokens = tokenize(line)
        braindumps = {
            braindump_id
            for braindump_id, other in history_tokens
            if jaccard_similarity(tokens, other) >= threshold
        }
        counts.append(len(braindumps))
    return counts

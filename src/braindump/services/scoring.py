"""Deterministic scoring of committed braindump tasks."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Sequence

from braindump.errors import BraindumpNotFound
from braindump.metrics import SCORING_DURATION
from braindump.models.braindump import RankedTask, ScorableTask, ScoreResult
from braindump.utils.logging import get_logger
from braindump.utils.text import truncate

if TYPE_CHECKING:
    from braindump.storage.postgres import PostgresStorage

logger = get_logger(__name__)

# Priority group -> weight (1 Must, 2 Need, 3 Should, 4 Want)
PRIORITY_GROUP_WEIGHTS = {1: 5.0, 2: 3.5, 3: 2.0, 4: 1.0}
DEFAULT_PRIORITY_WEIGHT = 2.0
LONGEVITY_WEIGHT = 2.0
QUICK_WIN_BOOST = 1.25
SHININESS_STEP = 0.05
MIN_SHININESS_PENALTY = 0.5
TOP_N = 3
SUMMARY_CONTENT_LENGTH = 40
NO_TASKS_SUMMARY = "No tasks available for scoring."


def priority_weight(priority_group: Optional[int]) -> float:
    if priority_group is None:
        return DEFAULT_PRIORITY_WEIGHT
    return PRIORITY_GROUP_WEIGHTS.get(priority_group, DEFAULT_PRIORITY_WEIGHT)


def compute_score(task: ScorableTask, max_longevity: int) -> float:
    """Score one task.

    score = (priority weight + longevity factor) x quick-win boost
            x urgency component x shininess penalty, rounded to 4 places.
    """
    longevity_factor = ((task.longevity or 0) / max(1, max_longevity)) * LONGEVITY_WEIGHT
    quick_win_boost = QUICK_WIN_BOOST if task.quick_win else 1.0

    urgency = 1.0
    if task.urgency_rank and task.urgency_rank > 0:
        urgency = 1 + 1 / task.urgency_rank  # rank 1 => 2.0, rank 2 => 1.5

    shininess = 1.0
    if task.shininess_rank and task.shininess_rank > 0:
        shininess = max(MIN_SHININESS_PENALTY, 1 - (task.shininess_rank - 1) * SHININESS_STEP)

    raw = (priority_weight(task.priority_group) + longevity_factor) * quick_win_boost * urgency * shininess
    return round(raw, 4)


def score_tasks(tasks: Sequence[ScorableTask]) -> list[RankedTask]:
    """Score and rank tasks, highest first.

    Ties keep input order (tasks are expected in creation order).
    """
    if not tasks:
        return []
    max_longevity = max(1, *(task.longevity or 0 for task in tasks))
    scored = [(task, compute_score(task, max_longevity)) for task in tasks]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return [
        RankedTask(
            id=task.id,
            content=task.content,
            score=score,
            overall_rank=rank,
            category=task.category,
            priority_group=task.priority_group,
            longevity=task.longevity,
            quick_win=task.quick_win,
            urgency_rank=task.urgency_rank,
            shininess_rank=task.shininess_rank,
        )
        for rank, (task, score) in enumerate(scored, start=1)
    ]


def build_summary(ranked: Sequence[RankedTask]) -> str:
    """One-line summary of the top tasks, quick wins, and mean score."""
    if not ranked:
        return "No tasks to summarize"
    top = ", ".join(f'"{truncate(task.content, SUMMARY_CONTENT_LENGTH)}"' for task in ranked[:TOP_N])
    quick_wins = sum(1 for task in ranked if task.quick_win)
    average = sum(task.score for task in ranked) / len(ranked)
    return f"Top focus: {top}. {quick_wins} quick wins. Avg score {average:.2f}."


class ScoringEngine:
    """Score a committed braindump and persist ranks."""

    def __init__(self, storage: "PostgresStorage"):
        self.storage = storage

    def score(self, braindump_id: str) -> ScoreResult:
        """Score every kept or merged task of a braindump.

        Args:
            braindump_id: Braindump to score

        Returns:
            ScoreResult with ranking and summary

        Raises:
            BraindumpNotFound: If the braindump does not exist
            PersistenceError: If reading or writing scores fails
        """
        if not self.storage.braindump_exists(braindump_id):
            raise BraindumpNotFound(f"Braindump {braindump_id} not found")

        with SCORING_DURATION.time():
            tasks = self.storage.get_scorable_tasks(braindump_id)
            if not tasks:
                logger.info(f"Braindump {braindump_id} has no tasks to score")
                return ScoreResult(braindump_id=braindump_id, top3=[], ranking=[], summary=NO_TASKS_SUMMARY)

            ranked = score_tasks(tasks)
            top3 = [task.id for task in ranked[:TOP_N]]
            summary = build_summary(ranked)

            self.storage.update_task_scores([(task.id, task.score, task.overall_rank) for task in ranked])
            self.storage.merge_braindump_metadata(
                braindump_id,
                {
                    "top3": top3,
                    "scoring_summary": summary,
                    "scored_at": datetime.now(timezone.utc).isoformat(),
                },
            )

        logger.info(f"Scored braindump {braindump_id}: {len(ranked)} tasks, top3={top3}")
        return ScoreResult(braindump_id=braindump_id, top3=top3, ranking=ranked, summary=summary)

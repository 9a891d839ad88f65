"""Braindump service: analyze, finalize, and score."""

from typing import TYPE_CHECKING, Any, Optional, Sequence

from braindump.errors import InputError
from braindump.metrics import SCORING_FAILURES, TASKS_SAVED
from braindump.models.analysis import AnalysisResult
from braindump.models.braindump import (
    COMMITTED_ACTIONS,
    INCOMING_ACTIONS,
    FinalizeResult,
    IncomingTask,
    ScoreResult,
    TaskRow,
)
from braindump.services.analyzer import BraindumpAnalyzer
from braindump.services.duplicates import DEFAULT_DUPLICATE_THRESHOLD
from braindump.services.heuristics import QUICK_WIN_MAX_WORDS
from braindump.services.longevity import compute_longevity
from braindump.services.reconcile import clamp_priority
from braindump.services.scoring import ScoringEngine
from braindump.utils.logging import get_logger
from braindump.utils.text import normalize_task_line, slugify_category, word_count

if TYPE_CHECKING:
    from braindump.storage.postgres import PostgresStorage

logger = get_logger(__name__)

DEFAULT_PRIORITY = 3


def priority_group_for(priority: int) -> int:
    """Map a 1-5 priority onto the four groups (1 Must, 2 Need, 3 Should, 4 Want)."""
    if priority >= 5:
        return 1
    if priority == 4:
        return 2
    if priority == 3:
        return 3
    return 4


def _optional_int(item: dict[str, Any], key: str) -> Optional[int]:
    value = item.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputError(f"Task field '{key}' must be an integer")
    return value


def parse_incoming_tasks(tasks: Any) -> list[IncomingTask]:
    """Validate the finalize task payload.

    Args:
        tasks: Decoded JSON list of task objects

    Returns:
        IncomingTask list in submitted order

    Raises:
        InputError: If the payload is not a list of well-formed task objects
    """
    if not isinstance(tasks, list):
        raise InputError("raw_text and tasks required")

    parsed = []
    for position, item in enumerate(tasks):
        if not isinstance(item, dict):
            raise InputError(f"Task {position} must be an object")
        line = item.get("line")
        if not isinstance(line, str) or not line.strip():
            raise InputError(f"Task {position} is missing 'line'")
        action = item.get("action")
        if action not in INCOMING_ACTIONS:
            raise InputError(f"Task {position} has invalid action {action!r}")
        category = item.get("category")
        if category is not None and not isinstance(category, str):
            raise InputError(f"Task {position} field 'category' must be a string")
        quick_win = item.get("quick_win")
        if quick_win is not None and not isinstance(quick_win, bool):
            raise InputError(f"Task {position} field 'quick_win' must be a boolean")

        parsed.append(
            IncomingTask(
                line=line.strip(),
                action=action,
                category=category,
                priority=_optional_int(item, "priority"),
                quick_win=quick_win,
                urgency_rank=_optional_int(item, "urgency_rank"),
                shininess_rank=_optional_int(item, "shininess_rank"),
            )
        )
    return parsed


class BraindumpService:
    """Entry points behind the HTTP API."""

    def __init__(
        self,
        analyzer: BraindumpAnalyzer,
        storage: "PostgresStorage",
        max_lines: int = 500,
        longevity_threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
        history_limit: int = 2000,
    ):
        """Initialize service.

        Args:
            analyzer: Braindump analyzer
            storage: Storage backend
            max_lines: Largest braindump accepted at finalize
            longevity_threshold: Jaccard threshold for matching historical tasks
            history_limit: Number of historical task rows considered for longevity
        """
        self.analyzer = analyzer
        self.storage = storage
        self.scoring = ScoringEngine(storage)
        self.max_lines = max_lines
        self.longevity_threshold = longevity_threshold
        self.history_limit = history_limit

    async def analyze(self, content: object) -> AnalysisResult:
        return await self.analyzer.analyze(content)

    def finalize(self, raw_text: Any, tasks: Any) -> FinalizeResult:
        """Commit kept and merged tasks, then score them.

        Args:
            raw_text: Original braindump text
            tasks: Reviewed task list (decoded JSON)

        Returns:
            FinalizeResult; scoring is None if scoring failed

        Raises:
            InputError: If input is invalid or nothing is kept
            PersistenceError: If saving the braindump fails
        """
        if not isinstance(raw_text, str) or not raw_text.strip():
            raise InputError("raw_text and tasks required")
        incoming = parse_incoming_tasks(tasks)

        kept = [task for task in incoming if task.action in COMMITTED_ACTIONS]
        if not kept:
            raise InputError("No tasks to save")
        if len(kept) > self.max_lines:
            raise InputError(f"Braindump has {len(kept)} tasks; the limit is {self.max_lines}")

        rows = self._build_rows(kept)
        braindump_id = self.storage.create_braindump(raw_text, rows)
        TASKS_SAVED.inc(len(rows))
        logger.info(f"Finalized braindump {braindump_id}: {len(rows)} of {len(incoming)} tasks saved")

        scoring: Optional[ScoreResult] = None
        try:
            scoring = self.scoring.score(braindump_id)
        except Exception as e:
            # Tasks are already committed; scoring can be retried via score()
            logger.error(f"Scoring failed for braindump {braindump_id}: {e}", exc_info=True)
            SCORING_FAILURES.inc()

        return FinalizeResult(braindump_id=braindump_id, tasks_saved=len(rows), scoring=scoring)

    def score(self, braindump_id: Any) -> ScoreResult:
        """Re-score a committed braindump.

        Raises:
            InputError: If braindump_id is missing
            BraindumpNotFound: If the braindump does not exist
            PersistenceError: If storage fails
        """
        if not isinstance(braindump_id, str) or not braindump_id.strip():
            raise InputError("braindump_id required")
        return self.scoring.score(braindump_id.strip())

    def _build_rows(self, kept: Sequence[IncomingTask]) -> list[TaskRow]:
        normalized = [normalize_task_line(task.line) for task in kept]
        history = self.storage.get_history(self.history_limit)
        longevity = compute_longevity(normalized, history, self.longevity_threshold)

        rows = []
        for task, norm, recurrences in zip(kept, normalized, longevity):
            priority = clamp_priority(task.priority) if task.priority is not None else DEFAULT_PRIORITY
            quick_win = task.quick_win
            if quick_win is None:
                quick_win = word_count(task.line) <= QUICK_WIN_MAX_WORDS
            rows.append(
                TaskRow(
                    content=task.line,
                    normalized=norm,
                    category=slugify_category(task.category) if task.category else "uncategorized",
                    priority=priority,
                    priority_group=priority_group_for(priority),
                    action=task.action,
                    longevity=recurrences,
                    quick_win=quick_win,
                    urgency_rank=task.urgency_rank if task.urgency_rank and task.urgency_rank > 0 else None,
                    shininess_rank=task.shininess_rank if task.shininess_rank and task.shininess_rank > 0 else None,
                )
            )
        return rows

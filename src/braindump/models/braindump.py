"""Data models for committed braindumps and their scored tasks."""

from dataclasses import asdict, dataclass
from typing import Any, Optional

# Actions that commit a task at finalize time
COMMITTED_ACTIONS = ("keep", "merge")
INCOMING_ACTIONS = ("keep", "merge", "clarify", "drop", "ignore")


@dataclass
class IncomingTask:
    """A reviewed task line submitted for finalize."""

    line: str
    action: str
    category: Optional[str] = None
    priority: Optional[int] = None
    quick_win: Optional[bool] = None
    urgency_rank: Optional[int] = None
    shininess_rank: Optional[int] = None


@dataclass
class TaskRow:
    """Row written to the tasks table at finalize time."""

    content: str
    normalized: str
    category: str
    priority: int
    priority_group: int
    action: str
    longevity: int
    quick_win: bool
    urgency_rank: Optional[int] = None
    shininess_rank: Optional[int] = None
    status: str = "todo"
    source: str = "braindump"


@dataclass
class ScorableTask:
    """Persisted task fields consumed by the scoring engine."""

    id: int
    content: str
    category: Optional[str]
    priority_group: Optional[int]
    longevity: Optional[int]
    quick_win: Optional[bool]
    urgency_rank: Optional[int] = None
    shininess_rank: Optional[int] = None


@dataclass
class RankedTask:
    id: int
    content: str
    score: float
    overall_rank: int
    category: Optional[str]
    priority_group: Optional[int]
    longevity: Optional[int]
    quick_win: Optional[bool]
    urgency_rank: Optional[int] = None
    shininess_rank: Optional[int] = None


@dataclass
class ScoreResult:
    braindump_id: str
    top3: list[int]
    ranking: list[RankedTask]
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FinalizeResult:
    braindump_id: str
    tasks_saved: int
    scoring: Optional[ScoreResult] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "braindump_id": self.braindump_id,
            "tasks_saved": self.tasks_saved,
            "scoring": self.scoring.to_dict() if self.scoring else None,
        }


@dataclass
class HistoricalTask:
    """Normalized task content from a previously committed braindump."""

    braindump_id: str
    normalized: str

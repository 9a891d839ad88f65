"""Data models for braindump analysis results."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class TaskSuggestion:
    """Review-stage suggestion for a single braindump line."""

    line: str
    normalized: str
    suggested_category: str
    suggested_priority: int
    action: str
    rationale: str
    subtasks: list[str] = field(default_factory=list)
    time_estimate_minutes: Optional[int] = None
    energy_level: str = "medium"
    quick_win: bool = False
    blocking: bool = False
    dependencies: list[int] = field(default_factory=list)


@dataclass
class DuplicateRelation:
    """Two task indices judged to describe the same outcome."""

    existing_task_index: int
    new_task_index: int
    similarity: float


@dataclass
class BatchingGroup:
    label: str
    task_indices: list[int]


@dataclass
class FirstNextAction:
    task_index: int
    why: str


@dataclass
class FocusSuggestion:
    """Small actionable focus: top 3, batching contexts, and a first step."""

    today_top_3: list[int] = field(default_factory=list)
    batching_groups: list[BatchingGroup] = field(default_factory=list)
    first_next_action: Optional[FirstNextAction] = None


@dataclass
class AnalysisStats:
    total_tasks: int = 0
    categorized: int = 0
    uncategorized: int = 0
    quick_wins: int = 0
    estimated_total_minutes: int = 0


@dataclass
class AnalysisResult:
    """Full analysis of a braindump, model-produced or heuristic."""

    categories: list[str]
    tasks: list[TaskSuggestion]
    summary: str
    detected_duplicates: list[DuplicateRelation]
    focus_suggestion: FocusSuggestion
    stats: AnalysisStats
    source: str = "heuristic"  # "model" or "heuristic"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

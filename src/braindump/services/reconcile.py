"""Force model output back into alignment with the parsed braindump lines."""

from typing import Optional, Sequence

from braindump.metrics import RECONCILIATION_REPAIRS
from braindump.models.analysis import (
    AnalysisResult,
    BatchingGroup,
    DuplicateRelation,
    FirstNextAction,
    FocusSuggestion,
    TaskSuggestion,
)
from braindump.services.heuristics import (
    MAX_BATCHING_GROUPS,
    MAX_ESTIMATE_MINUTES,
    MAX_RATIONALE_LENGTH,
    MAX_TOP_TASKS,
    MIN_ESTIMATE_MINUTES,
    build_focus_suggestion,
    build_heuristic_tasks,
    build_summary,
    compute_stats,
)
from braindump.services.schema import ModelAnalysis, ModelFocusSuggestion, ModelTask
from braindump.utils.logging import get_logger
from braindump.utils.text import normalize_task_line, slugify_category

logger = get_logger(__name__)

MODEL_DUPLICATE_MIN_SIMILARITY = 0.85
MAX_CATEGORIES = 8
MAX_SUBTASKS = 3
MIN_PRIORITY = 1
MAX_PRIORITY = 5
RECOVERY_RATIONALE = "Rebuilt from heuristics: model output did not match this line"


def clamp_priority(value: int) -> int:
    return max(MIN_PRIORITY, min(MAX_PRIORITY, value))


def sanitize_time_estimate(value: Optional[int]) -> Optional[int]:
    """Null out non-positive estimates and clamp the rest to [5, 240]."""
    if value is None or value <= 0:
        return None
    return max(MIN_ESTIMATE_MINUTES, min(MAX_ESTIMATE_MINUTES, value))


def reconcile_analysis(lines: Sequence[str], model: ModelAnalysis) -> AnalysisResult:
    """Merge validated model output with the authoritative line list.

    Args:
        lines: Parsed braindump lines (position is the join key)
        model: Validated model output

    Returns:
        AnalysisResult aligned 1:1 with lines, with stats derived locally
    """
    fallback_tasks = build_heuristic_tasks(lines)
    count = len(lines)

    tasks: list[TaskSuggestion] = []
    for index, line in enumerate(lines):
        model_task = model.tasks[index] if index < len(model.tasks) else None
        if model_task is None or model_task.line != line:
            RECONCILIATION_REPAIRS.inc()
            logger.warning(f"Model task {index} missing or misaligned, rebuilding from heuristics")
            repaired = fallback_tasks[index]
            repaired.rationale = RECOVERY_RATIONALE
            tasks.append(repaired)
            continue
        tasks.append(_accept_model_task(index, model_task, count))

    if len(model.tasks) > count:
        logger.warning(f"Discarding {len(model.tasks) - count} model tasks beyond input length")

    categories = list(dict.fromkeys(task.suggested_category for task in tasks))[:MAX_CATEGORIES]

    if model.focus_suggestion is None:
        logger.warning("Model omitted focus suggestion, using heuristic focus")
        focus = build_focus_suggestion(tasks)
    else:
        focus = _reconcile_focus(model.focus_suggestion, tasks)

    stats = compute_stats(tasks)
    summary = (model.summary or "").strip() or build_summary(stats)

    return AnalysisResult(
        categories=categories,
        tasks=tasks,
        summary=summary,
        detected_duplicates=_reconcile_duplicates(model, count),
        focus_suggestion=focus,
        stats=stats,
        source="model",
    )


def _accept_model_task(index: int, task: ModelTask, count: int) -> TaskSuggestion:
    return TaskSuggestion(
        line=task.line,
        normalized=normalize_task_line(task.line),
        suggested_category=slugify_category(task.suggested_category),
        suggested_priority=clamp_priority(task.suggested_priority),
        action=task.action,
        rationale=task.rationale.strip()[:MAX_RATIONALE_LENGTH],
        subtasks=[s.strip() for s in task.subtasks if s.strip()][:MAX_SUBTASKS],
        time_estimate_minutes=sanitize_time_estimate(task.time_estimate_minutes),
        energy_level=task.energy_level,
        quick_win=task.quick_win,
        blocking=task.blocking,
        dependencies=[d for d in dict.fromkeys(task.dependencies) if 0 <= d < count and d != index],
    )


def _reconcile_duplicates(model: ModelAnalysis, count: int) -> list[DuplicateRelation]:
    # Accepted as reported by the model; only shape and threshold are enforced
    duplicates = []
    seen: set[tuple[int, int]] = set()
    for dup in model.detected_duplicates:
        existing, new = dup.existing_task_index, dup.new_task_index
        if not (0 <= existing < new < count):
            continue
        if not MODEL_DUPLICATE_MIN_SIMILARITY <= dup.similarity <= 1:
            continue
        if (existing, new) in seen:
            continue
        seen.add((existing, new))
        duplicates.append(
            DuplicateRelation(
                existing_task_index=existing,
                new_task_index=new,
                similarity=round(dup.similarity, 2),
            )
        )
    return duplicates


def _reconcile_focus(focus: ModelFocusSuggestion, tasks: Sequence[TaskSuggestion]) -> FocusSuggestion:
    count = len(tasks)

    def valid(index: int) -> bool:
        return 0 <= index < count

    today_top_3 = [i for i in dict.fromkeys(focus.today_top_3) if valid(i)][:MAX_TOP_TASKS]

    groups = []
    for group in focus.batching_groups:
        indices = [i for i in dict.fromkeys(group.task_indices) if valid(i)]
        if len(indices) >= 2:
            groups.append(BatchingGroup(label=group.label.strip() or "batch", task_indices=indices))
    groups = groups[:MAX_BATCHING_GROUPS]

    first = focus.first_next_action
    if first is not None and valid(first.task_index):
        first_next_action: Optional[FirstNextAction] = FirstNextAction(
            task_index=first.task_index, why=first.why.strip()
        )
    else:
        first_next_action = build_focus_suggestion(tasks).first_next_action

    return FocusSuggestion(
        today_top_3=today_top_3,
        batching_groups=groups,
        first_next_action=first_next_action,
    )

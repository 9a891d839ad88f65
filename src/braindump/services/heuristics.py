"""Keyword heuristics used when the model path is unavailable or needs repair."""

import re
from typing import Optional, Sequence

from braindump.models.analysis import (
    AnalysisResult,
    AnalysisStats,
    BatchingGroup,
    DuplicateRelation,
    FirstNextAction,
    FocusSuggestion,
    TaskSuggestion,
)
from braindump.services.duplicates import DEFAULT_DUPLICATE_THRESHOLD, detect_duplicates
from braindump.utils.text import normalize_task_line, word_count

# Ordered (pattern, category, priority) table. The first matching pattern wins,
# so urgent and specific signals are listed before generic ones. Lines that
# match none fall through to the short-line quick_win rule, then uncategorized.
CATEGORY_RULES: list[tuple[re.Pattern[str], str, int]] = [
    (re.compile(r"bug|fix|error|issue"), "bug", 5),
    (re.compile(r"email|reply|respond|follow up"), "communication", 3),
    (re.compile(r"plan|strategy|roadmap"), "planning", 4),
    (re.compile(r"learn|read|study|research"), "learning", 2),
    (re.compile(r"deploy|monitor|infrastructure|server|ops"), "ops", 4),
]
QUICK_WIN_MAX_WORDS = 3
QUICK_WIN_CATEGORY = ("quick_win", 2)
DEFAULT_CATEGORY = ("uncategorized", 3)

BLOCKING_RE = re.compile(r"block|waiting|unblock|depends", re.IGNORECASE)
# A lone word or "Heading:" token with nothing actionable attached
HEADING_RE = re.compile(r"^([A-Z][a-z]+:?|[a-z]+)$")

MEDIUM_ENERGY_MAX_WORDS = 8
MINUTES_PER_WORD = 5
MIN_ESTIMATE_MINUTES = 5
MAX_ESTIMATE_MINUTES = 240
MAX_RATIONALE_LENGTH = 120
MAX_TOP_TASKS = 3
MAX_BATCHING_GROUPS = 3

RATIONALE_QUICK_WIN = "Short task - fast momentum"
RATIONALE_BLOCKING = "Prerequisite that unlocks other work"
RATIONALE_DEFAULT = "Typical task derived from braindump"

WHY_QUICK_WIN = "Fast win to build momentum"
WHY_BLOCKING = "Unblocks other work"
WHY_DEFAULT = "Earliest high-priority item"


def categorize_line(line: str) -> tuple[str, int]:
    """Classify a line into (category, priority) using CATEGORY_RULES."""
    lowered = line.lower()
    for pattern, category, priority in CATEGORY_RULES:
        if pattern.search(lowered):
            return category, priority
    if word_count(line) <= QUICK_WIN_MAX_WORDS:
        return QUICK_WIN_CATEGORY
    return DEFAULT_CATEGORY


def estimate_minutes(words: int, quick_win: bool) -> int:
    if quick_win:
        return MIN_ESTIMATE_MINUTES
    return min(MAX_ESTIMATE_MINUTES, max(MIN_ESTIMATE_MINUTES, words * MINUTES_PER_WORD))


def build_heuristic_task(line: str, seen_earlier: bool) -> TaskSuggestion:
    """Build a suggestion for one line.

    Args:
        line: Original line text
        seen_earlier: True when an earlier line has the same normalized text

    Returns:
        TaskSuggestion with heuristic estimates
    """
    category, priority = categorize_line(line)
    words = word_count(line)
    quick_win = words <= QUICK_WIN_MAX_WORDS
    blocking = bool(BLOCKING_RE.search(line))

    if quick_win:
        energy_level = "low"
    elif words <= MEDIUM_ENERGY_MAX_WORDS:
        energy_level = "medium"
    else:
        energy_level = "high"

    if seen_earlier:
        action = "merge"
    elif words == 1 and HEADING_RE.match(line):
        action = "clarify"
    else:
        action = "keep"

    if quick_win:
        rationale = RATIONALE_QUICK_WIN
    elif blocking:
        rationale = RATIONALE_BLOCKING
    else:
        rationale = RATIONALE_DEFAULT

    return TaskSuggestion(
        line=line,
        normalized=normalize_task_line(line),
        suggested_category=category,
        suggested_priority=priority,
        action=action,
        rationale=rationale[:MAX_RATIONALE_LENGTH],
        subtasks=[],
        time_estimate_minutes=estimate_minutes(words, quick_win),
        energy_level=energy_level,
        quick_win=quick_win,
        blocking=blocking,
        dependencies=[],
    )


def build_heuristic_tasks(lines: Sequence[str]) -> list[TaskSuggestion]:
    """Build heuristic suggestions for every line, marking repeats as merges."""
    seen: set[str] = set()
    tasks = []
    for line in lines:
        normalized = normalize_task_line(line)
        tasks.append(build_heuristic_task(line, seen_earlier=normalized in seen))
        seen.add(normalized)
    return tasks


def _is_actionable(task: TaskSuggestion) -> bool:
    return task.action in ("keep", "merge")


def build_focus_suggestion(tasks: Sequence[TaskSuggestion]) -> FocusSuggestion:
    """Pick a small focus from heuristic signals.

    today_top_3 takes one quick win, one blocking task, then fills by
    descending priority. Only actionable tasks are picked and the list is
    never padded past what exists.
    """
    actionable = [i for i, task in enumerate(tasks) if _is_actionable(task)]
    quick_wins = [i for i in actionable if tasks[i].quick_win]
    blocking = [i for i in actionable if tasks[i].blocking]
    by_priority = sorted(actionable, key=lambda i: tasks[i].suggested_priority, reverse=True)

    today_top_3: list[int] = []
    candidates = quick_wins[:1] + blocking[:1] + by_priority
    for index in candidates:
        if len(today_top_3) >= MAX_TOP_TASKS:
            break
        if index not in today_top_3:
            today_top_3.append(index)

    return FocusSuggestion(
        today_top_3=today_top_3,
        batching_groups=build_batching_groups(tasks),
        first_next_action=_first_next_action(tasks, quick_wins, blocking, actionable),
    )


def build_batching_groups(tasks: Sequence[TaskSuggestion]) -> list[BatchingGroup]:
    """Group tasks sharing a category; groups need at least two members."""
    members: dict[str, list[int]] = {}
    for index, task in enumerate(tasks):
        members.setdefault(task.suggested_category, []).append(index)
    groups = [
        BatchingGroup(label=label, task_indices=indices)
        for label, indices in members.items()
        if len(indices) >= 2
    ]
    return groups[:MAX_BATCHING_GROUPS]


def _first_next_action(
    tasks: Sequence[TaskSuggestion],
    quick_wins: list[int],
    blocking: list[int],
    actionable: list[int],
) -> Optional[FirstNextAction]:
    if not tasks:
        return None
    if quick_wins:
        return FirstNextAction(task_index=quick_wins[0], why=WHY_QUICK_WIN)
    if blocking:
        return FirstNextAction(task_index=blocking[0], why=WHY_BLOCKING)
    return FirstNextAction(task_index=actionable[0] if actionable else 0, why=WHY_DEFAULT)


def compute_stats(tasks: Sequence[TaskSuggestion]) -> AnalysisStats:
    """Derive stats from the final task list."""
    total = len(tasks)
    categorized = sum(
        1 for task in tasks if task.suggested_category and task.suggested_category != "uncategorized"
    )
    return AnalysisStats(
        total_tasks=total,
        categorized=categorized,
        uncategorized=total - categorized,
        quick_wins=sum(1 for task in tasks if task.quick_win),
        estimated_total_minutes=sum(task.time_estimate_minutes or 0 for task in tasks),
    )


def build_summary(stats: AnalysisStats) -> str:
    return (
        f"Identified {stats.total_tasks} tasks "
        f"({stats.quick_wins} quick wins, {stats.categorized} categorized)."
    )


def empty_analysis() -> AnalysisResult:
    """Well-formed result for empty or whitespace-only input."""
    return AnalysisResult(
        categories=[],
        tasks=[],
        summary="No tasks provided",
        detected_duplicates=[],
        focus_suggestion=FocusSuggestion(),
        stats=AnalysisStats(),
        source="heuristic",
    )


def build_fallback_analysis(
    lines: Sequence[str], duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD
) -> AnalysisResult:
    """Complete heuristic analysis of already-parsed lines."""
    if not lines:
        return empty_analysis()

    tasks = build_heuristic_tasks(lines)
    categories = list(dict.fromkeys(task.suggested_category for task in tasks))
    duplicates = [
        DuplicateRelation(
            existing_task_index=pair.a_index,
            new_task_index=pair.b_index,
            similarity=round(pair.score, 2),
        )
        for pair in detect_duplicates(lines, duplicate_threshold)
    ]
    stats = compute_stats(tasks)

    return AnalysisResult(
        categories=categories,
        tasks=tasks,
        summary=build_summary(stats),
        detected_duplicates=duplicates,
        focus_suggestion=build_focus_suggestion(tasks),
        stats=stats,
        source="heuristic",
    )

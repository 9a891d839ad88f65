"""Braindump analysis: model path with heuristic fallback."""

import json
from typing import Optional

from pydantic import ValidationError

from braindump.errors import InputError
from braindump.metrics import ANALYSES_TOTAL, ANALYSIS_DURATION, LLM_FAILURES
from braindump.models.analysis import AnalysisResult
from braindump.services.duplicates import DEFAULT_DUPLICATE_THRESHOLD
from braindump.services.heuristics import build_fallback_analysis, empty_analysis
from braindump.services.llm import GeminiClient, LLMError
from braindump.services.reconcile import reconcile_analysis
from braindump.services.schema import parse_model_analysis
from braindump.utils.logging import get_logger
from braindump.utils.text import parse_braindump

logger = get_logger(__name__)

# Analysis prompt template
ANALYSIS_PROMPT = """You are analyzing a user's raw "braindump" of tasks (each line is one item) to help them clarify, categorize, and gently prioritize their work.
Act like a blend of ADHD coach, executive assistant, and encouraging planner. Be practical, never judgmental.

Braindump input ({count} lines, one item per line; copy each line EXACTLY into the "line" field):
{lines}

RULES:
- Treat every non-empty line as a potential task even if vague. Do NOT invent, drop, merge, or reorder lines.
- tasks[i] must describe input line i. tasks has exactly {count} entries.
- If a line is purely a heading (e.g. "Frontend", "Marketing") use action "clarify".
- normalized: lowercase, trim, collapse internal whitespace, strip trailing punctuation (. ! ? ; : ,).
- suggested_priority: 5 = urgent / high leverage / unblocking others, 4 = important soon, 3 = standard, 2 = improvement, 1 = optional / speculative.
- quick_win: true if likely under 15 minutes OR extremely low ambiguity.
- energy_level: low | medium | high.
- blocking: true if the task prevents progress on others or is clearly a prerequisite.
- subtasks: only when the line implies 2 or more sequential steps; max 3 verb phrases; otherwise [].
- time_estimate_minutes: whole number 5-240, or null if impossible to guess.
- suggested_category: a small controlled set such as "bug", "ops", "planning", "learning", "communication", "research", "refactor", "design", "deployment", "admin", "personal"; otherwise "uncategorized".
- action: keep = fine as-is, merge = same concrete outcome as another line (list it in detected_duplicates), clarify = needs clarification, drop = non-actionable note. Prefer "clarify" over "drop".
- dependencies: indices of tasks this one waits on.

DUPLICATES:
- Only mark two lines as duplicates when they describe the same concrete deliverable.
- similarity is 0-1 rounded to 2 decimals. Only include pairs with similarity >= 0.85, existing_task_index < new_task_index.
- If there are no duplicates, detected_duplicates is [].

FOCUS:
- today_top_3: up to three task indices (one quick win, one meaningful, one foundational). Do not pad.
- batching_groups: 0-3 groups of tasks doable in one context; each group has at least 2 task indices.
- first_next_action: exactly one task small enough to start immediately, with a short why.

OUTPUT: JSON only, no markdown fences, exactly this shape:
{{
  "categories": ["category"],
  "tasks": [
    {{
      "line": "original exact line text",
      "normalized": "normalized form",
      "suggested_category": "string",
      "suggested_priority": 3,
      "action": "keep",
      "rationale": "brief reason (<=120 chars, positive tone)",
      "subtasks": [],
      "time_estimate_minutes": null,
      "energy_level": "medium",
      "quick_win": false,
      "blocking": false,
      "dependencies": []
    }}
  ],
  "summary": "1-2 motivating sentences",
  "detected_duplicates": [
    {{"existing_task_index": 0, "new_task_index": 1, "similarity": 0.9}}
  ],
  "focus_suggestion": {{
    "today_top_3": [0],
    "batching_groups": [{{"label": "context label", "task_indices": [0, 1]}}],
    "first_next_action": {{"task_index": 0, "why": "short why"}}
  }}
}}
"""


def build_analysis_prompt(lines: list[str]) -> str:
    numbered = "\n".join(f"{index}: {json.dumps(line, ensure_ascii=False)}" for index, line in enumerate(lines))
    return ANALYSIS_PROMPT.format(count=len(lines), lines=numbered)


class BraindumpAnalyzer:
    """Analyze braindumps with Gemini, falling back to heuristics."""

    def __init__(
        self,
        client: Optional[GeminiClient],
        duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
        max_lines: int = 500,
    ):
        """Initialize analyzer.

        Args:
            client: Gemini client, or None to always use heuristics
            duplicate_threshold: Jaccard threshold for heuristic duplicates
            max_lines: Largest braindump accepted for analysis
        """
        self.client = client
        self.duplicate_threshold = duplicate_threshold
        self.max_lines = max_lines
        if client is None:
            logger.warning("No Gemini client configured; analysis will use heuristics")

    async def analyze(self, content: object) -> AnalysisResult:
        """Analyze raw braindump text.

        Args:
            content: Raw text as submitted

        Returns:
            AnalysisResult aligned with the parsed lines

        Raises:
            InputError: If the braindump has more lines than max_lines
        """
        lines = parse_braindump(content)
        if not lines:
            ANALYSES_TOTAL.labels(source="empty").inc()
            return empty_analysis()
        if len(lines) > self.max_lines:
            raise InputError(f"Braindump has {len(lines)} lines; the limit is {self.max_lines}")

        with ANALYSIS_DURATION.time():
            result = await self._analyze_lines(lines)

        ANALYSES_TOTAL.labels(source=result.source).inc()
        logger.info(
            f"Analyzed braindump: {result.stats.total_tasks} tasks, "
            f"{len(result.detected_duplicates)} duplicates (source={result.source})"
        )
        return result

    async def _analyze_lines(self, lines: list[str]) -> AnalysisResult:
        if self.client is None:
            return build_fallback_analysis(lines, self.duplicate_threshold)

        try:
            data = await self.client.generate_json(build_analysis_prompt(lines))
            model = parse_model_analysis(data)
        except LLMError as e:
            logger.warning(f"Model analysis failed ({e.reason}): {e}, using heuristics")
            LLM_FAILURES.labels(reason=e.reason).inc()
            return build_fallback_analysis(lines, self.duplicate_threshold)
        except ValidationError as e:
            logger.warning(f"Model analysis did not match schema: {e.error_count()} errors, using heuristics")
            LLM_FAILURES.labels(reason="schema").inc()
            return build_fallback_analysis(lines, self.duplicate_threshold)

        return reconcile_analysis(lines, model)

"""Validation schema for the JSON the model returns.

The envelope is validated strictly. Task entries are validated one at a time
so a single malformed entry only costs that line (it is rebuilt from the
heuristics) instead of the whole response.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class ModelTask(BaseModel):
    model_config = ConfigDict(strict=True)

    line: str
    normalized: Optional[str] = None
    suggested_category: str = "uncategorized"
    suggested_priority: int = 3
    action: Literal["keep", "merge", "clarify", "drop"] = "keep"
    rationale: str = ""
    subtasks: list[str] = Field(default_factory=list)
    time_estimate_minutes: Optional[int] = None
    energy_level: Literal["low", "medium", "high"] = "medium"
    quick_win: bool = False
    blocking: bool = False
    dependencies: list[int] = Field(default_factory=list)

    @field_validator("energy_level", mode="before")
    @classmethod
    def _lowercase_energy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ModelDuplicate(BaseModel):
    model_config = ConfigDict(strict=True)

    existing_task_index: int
    new_task_index: int
    similarity: float


class ModelBatchingGroup(BaseModel):
    model_config = ConfigDict(strict=True)

    label: str
    task_indices: list[int]


class ModelFirstNextAction(BaseModel):
    model_config = ConfigDict(strict=True)

    task_index: int
    why: str = ""


class ModelFocusSuggestion(BaseModel):
    model_config = ConfigDict(strict=True)

    today_top_3: list[int] = Field(default_factory=list)
    batching_groups: list[ModelBatchingGroup] = Field(default_factory=list)
    first_next_action: Optional[ModelFirstNextAction] = None


class ModelEnvelope(BaseModel):
    """Top-level shape; tasks stay raw until validated per entry.

    Categories are rebuilt from the tasks, so the model's list is not read.
    """

    model_config = ConfigDict(strict=True)

    tasks: list[Any]
    summary: Optional[str] = None
    detected_duplicates: list[ModelDuplicate] = Field(default_factory=list)
    focus_suggestion: Optional[ModelFocusSuggestion] = None


class ModelAnalysis(BaseModel):
    """Validated model output ready for reconciliation.

    tasks[i] is None where the model's entry at i failed validation.
    """

    tasks: list[Optional[ModelTask]]
    summary: Optional[str]
    detected_duplicates: list[ModelDuplicate]
    focus_suggestion: Optional[ModelFocusSuggestion]


def parse_model_analysis(data: Any) -> ModelAnalysis:
    """Validate raw model JSON.

    Args:
        data: Parsed JSON value returned by the model

    Returns:
        ModelAnalysis with invalid task entries replaced by None

    Raises:
        ValidationError: If the envelope itself does not match the schema
    """
    envelope = ModelEnvelope.model_validate(data)
    tasks: list[Optional[ModelTask]] = []
    for entry in envelope.tasks:
        try:
            tasks.append(ModelTask.model_validate(entry))
        except ValidationError:
            tasks.append(None)
    return ModelAnalysis(
        tasks=tasks,
        summary=envelope.summary,
        detected_duplicates=envelope.detected_duplicates,
        focus_suggestion=envelope.focus_suggestion,
    )

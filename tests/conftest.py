import itertools
from typing import Any, Optional, Sequence

import pytest

from braindump.errors import PersistenceError
from braindump.models.braindump import COMMITTED_ACTIONS, HistoricalTask, ScorableTask, TaskRow


class FakeStorage:
    """In-memory stand-in for PostgresStorage."""

    def __init__(self) -> None:
        self.braindumps: dict[str, dict[str, Any]] = {}
        self.tasks: list[dict[str, Any]] = []
        self.score_updates: list[list[tuple[int, float, int]]] = []
        self.fail_create = False
        self.fail_scores = False
        self._braindump_ids = itertools.count(1)
        self._task_ids = itertools.count(1)

    def create_braindump(self, raw_text: str, tasks: Sequence[TaskRow]) -> str:
        if self.fail_create:
            raise PersistenceError("insert failed")
        braindump_id = f"bd-{next(self._braindump_ids)}"
        self.braindumps[braindump_id] = {"raw_text": raw_text, "task_count": len(tasks), "metadata": {}}
        for task in tasks:
            self.tasks.append(
                {
                    "id": next(self._task_ids),
                    "braindump_id": braindump_id,
                    "row": task,
                    "score": None,
                    "overall_rank": None,
                }
            )
        return braindump_id

    def get_history(self, limit: int) -> list[HistoricalTask]:
        recent = list(reversed(self.tasks))[:limit]
        return [HistoricalTask(braindump_id=t["braindump_id"], normalized=t["row"].normalized) for t in recent]

    def braindump_exists(self, braindump_id: str) -> bool:
        return braindump_id in self.braindumps

    def get_scorable_tasks(self, braindump_id: str) -> list[ScorableTask]:
        return [
            ScorableTask(
                id=t["id"],
                content=t["row"].content,
                category=t["row"].category,
                priority_group=t["row"].priority_group,
                longevity=t["row"].longevity,
                quick_win=t["row"].quick_win,
                urgency_rank=t["row"].urgency_rank,
                shininess_rank=t["row"].shininess_rank,
            )
            for t in self.tasks
            if t["braindump_id"] == braindump_id and t["row"].action in COMMITTED_ACTIONS
        ]

    def update_task_scores(self, scores: Sequence[tuple[int, float, int]]) -> None:
        if self.fail_scores:
            raise PersistenceError("update failed")
        self.score_updates.append(list(scores))
        by_id = {t["id"]: t for t in self.tasks}
        for task_id, score, rank in scores:
            by_id[task_id]["score"] = score
            by_id[task_id]["overall_rank"] = rank

    def merge_braindump_metadata(self, braindump_id: str, patch: dict[str, Any]) -> None:
        self.braindumps[braindump_id]["metadata"].update(patch)

    def task(self, task_id: int) -> Optional[dict[str, Any]]:
        return next((t for t in self.tasks if t["id"] == task_id), None)


@pytest.fixture
def storage():
    return FakeStorage()

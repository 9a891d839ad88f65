import asyncio

import pytest

from braindump.errors import InputError, PersistenceError
from braindump.services.analyzer import BraindumpAnalyzer
from braindump.services.braindumps import BraindumpService, parse_incoming_tasks, priority_group_for


@pytest.fixture
def service(storage):
    return BraindumpService(BraindumpAnalyzer(None), storage)


def test_analyze_delegates_to_analyzer(service):
    result = asyncio.run(service.analyze("Fix login bug"))
    assert result.stats.total_tasks == 1


@pytest.mark.parametrize("priority,group", [(5, 1), (4, 2), (3, 3), (2, 4), (1, 4)])
def test_priority_group_mapping(priority, group):
    assert priority_group_for(priority) == group


def test_finalize_saves_only_kept_and_merged_tasks(service, storage):
    tasks = [
        {"line": "Fix login bug", "action": "keep", "category": "Bug Fix", "priority": 5},
        {"line": "Frontend", "action": "clarify"},
        {"line": "fix login bug again", "action": "merge"},
        {"line": "Old idea", "action": "drop"},
        {"line": "Ignore me", "action": "ignore"},
    ]
    result = service.finalize("Fix login bug\nFrontend\n...", tasks)

    assert result.tasks_saved == 2
    assert storage.braindumps[result.braindump_id]["task_count"] == 2
    saved = [t["row"] for t in storage.tasks]
    assert [r.content for r in saved] == ["Fix login bug", "fix login bug again"]
    assert saved[0].category == "bug-fix"
    assert saved[0].priority_group == 1
    assert saved[1].category == "uncategorized"
    assert saved[1].priority == 3
    assert saved[1].priority_group == 3
    assert result.scoring is not None
    assert len(result.scoring.ranking) == 2


def test_finalize_response_shape(service):
    result = service.finalize("Buy milk", [{"line": "Buy milk", "action": "keep"}]).to_dict()
    assert set(result) == {"braindump_id", "tasks_saved", "scoring"}
    assert result["scoring"]["top3"] == [1]


def test_finalize_with_nothing_kept_writes_nothing(service, storage):
    tasks = [{"line": "Frontend", "action": "clarify"}, {"line": "Old", "action": "drop"}]
    with pytest.raises(InputError, match="No tasks to save"):
        service.finalize("Frontend\nOld", tasks)
    assert storage.braindumps == {}
    assert storage.tasks == []


@pytest.mark.parametrize(
    "raw_text,tasks",
    [
        ("", [{"line": "a", "action": "keep"}]),
        (None, [{"line": "a", "action": "keep"}]),
        ("text", None),
        ("text", "not a list"),
        ("text", ["not an object"]),
        ("text", [{"action": "keep"}]),
        ("text", [{"line": "a", "action": "archive"}]),
        ("text", [{"line": "a", "action": "keep", "priority": "high"}]),
        ("text", [{"line": "a", "action": "keep", "priority": True}]),
        ("text", [{"line": "a", "action": "keep", "quick_win": "yes"}]),
        ("text", [{"line": "a", "action": "keep", "category": 7}]),
    ],
)
def test_finalize_rejects_bad_payloads(service, storage, raw_text, tasks):
    with pytest.raises(InputError):
        service.finalize(raw_text, tasks)
    assert storage.tasks == []


def test_finalize_clamps_priority_and_ignores_non_positive_ranks(service, storage):
    tasks = [{"line": "Launch site", "action": "keep", "priority": 11, "urgency_rank": 0, "shininess_rank": -2}]
    service.finalize("Launch site", tasks)
    saved = storage.tasks[0]["row"]
    assert saved.priority == 5
    assert saved.priority_group == 1
    assert saved.urgency_rank is None
    assert saved.shininess_rank is None


def test_finalize_derives_quick_win_when_missing(service, storage):
    tasks = [
        {"line": "Buy milk", "action": "keep"},
        {"line": "Write the quarterly planning document", "action": "keep"},
        {"line": "Write the quarterly planning document again", "action": "keep", "quick_win": True},
    ]
    service.finalize("x", tasks)
    assert [t["row"].quick_win for t in storage.tasks] == [True, False, True]


def test_longevity_counts_earlier_braindumps(service, storage):
    service.finalize("x", [{"line": "Renew passport", "action": "keep"}])
    service.finalize("y", [{"line": "renew passport!", "action": "keep"}, {"line": "Renew passport", "action": "merge"}])
    result = service.finalize("z", [{"line": "Renew passport", "action": "keep"}, {"line": "New thing", "action": "keep"}])

    rows = [t["row"] for t in storage.tasks if t["braindump_id"] == result.braindump_id]
    assert [r.longevity for r in rows] == [2, 0]
    assert storage.tasks[0]["row"].longevity == 0


def test_persistence_error_propagates(service, storage):
    storage.fail_create = True
    with pytest.raises(PersistenceError):
        service.finalize("x", [{"line": "Buy milk", "action": "keep"}])


def test_scoring_failure_keeps_committed_tasks(service, storage):
    storage.fail_scores = True
    result = service.finalize("x", [{"line": "Buy milk", "action": "keep"}])
    assert result.scoring is None
    assert result.tasks_saved == 1
    assert result.to_dict()["scoring"] is None
    assert len(storage.tasks) == 1


def test_finalize_enforces_size_limit(storage):
    service = BraindumpService(BraindumpAnalyzer(None), storage, max_lines=1)
    tasks = [{"line": "a", "action": "keep"}, {"line": "b", "action": "keep"}]
    with pytest.raises(InputError):
        service.finalize("a\nb", tasks)
    assert storage.tasks == []


def test_score_validates_id(service):
    with pytest.raises(InputError, match="braindump_id required"):
        service.score("  ")
    with pytest.raises(InputError):
        service.score(None)


def test_score_strips_id(service):
    result = service.finalize("x", [{"line": "Buy milk", "action": "keep"}])
    rescored = service.score(f"  {result.braindump_id} ")
    assert rescored.braindump_id == result.braindump_id


def test_parse_incoming_tasks_strips_lines():
    parsed = parse_incoming_tasks([{"line": "  Buy milk ", "action": "keep", "urgency_rank": 2}])
    assert parsed[0].line == "Buy milk"
    assert parsed[0].urgency_rank == 2
    assert parsed[0].quick_win is None

import pytest

from braindump.errors import BraindumpNotFound
from braindump.models.braindump import ScorableTask, TaskRow
from braindump.services.scoring import NO_TASKS_SUMMARY, ScoringEngine, build_summary, compute_score, score_tasks


def scorable(task_id, **overrides):
    fields = {
        "id": task_id,
        "content": f"task {task_id}",
        "category": "work",
        "priority_group": 3,
        "longevity": 0,
        "quick_win": False,
        "urgency_rank": None,
        "shininess_rank": None,
    }
    fields.update(overrides)
    return ScorableTask(**fields)


def row(content, action="keep", **overrides):
    fields = {
        "content": content,
        "normalized": content.lower(),
        "category": "work",
        "priority": 3,
        "priority_group": 3,
        "action": action,
        "longevity": 0,
        "quick_win": False,
        "urgency_rank": None,
        "shininess_rank": None,
    }
    fields.update(overrides)
    return TaskRow(**fields)


@pytest.mark.parametrize(
    "overrides,expected",
    [
        ({"priority_group": 1}, 5.0),
        ({"priority_group": 2}, 3.5),
        ({"priority_group": 4}, 1.0),
        ({"priority_group": None}, 2.0),
        ({"priority_group": 9}, 2.0),
        ({"quick_win": True}, 2.5),
        ({"urgency_rank": 1}, 4.0),
        ({"urgency_rank": 2}, 3.0),
        ({"shininess_rank": 3}, 1.8),
        ({"shininess_rank": 50}, 1.0),
        ({"urgency_rank": 0, "shininess_rank": -1}, 2.0),
        ({"longevity": 2}, 4.0),
    ],
)
def test_compute_score(overrides, expected):
    assert compute_score(scorable(1, **overrides), max_longevity=2) == pytest.approx(expected)


def test_all_factors_combine():
    task = scorable(1, priority_group=2, longevity=1, quick_win=True, urgency_rank=4, shininess_rank=2)
    # (3.5 + 1.0) * 1.25 * 1.25 * 0.95
    assert compute_score(task, max_longevity=2) == round(4.5 * 1.25 * 1.25 * 0.95, 4)


def test_urgent_quick_win_outranks_plain_must_do():
    must = scorable(1, priority_group=1)
    quick = scorable(2, priority_group=3, quick_win=True, longevity=2, urgency_rank=1)
    ranked = score_tasks([must, quick])
    assert [t.id for t in ranked] == [2, 1]
    assert [t.overall_rank for t in ranked] == [1, 2]
    assert ranked[0].score == pytest.approx(10.0)


def test_ties_keep_input_order():
    ranked = score_tasks([scorable(3), scorable(1), scorable(2)])
    assert [t.id for t in ranked] == [3, 1, 2]
    assert [t.overall_rank for t in ranked] == [1, 2, 3]


def test_zero_longevity_everywhere_adds_nothing():
    ranked = score_tasks([scorable(1), scorable(2, priority_group=1)])
    assert [t.score for t in ranked] == [5.0, 2.0]


def test_summary_format():
    ranked = score_tasks(
        [
            scorable(1, content="A" * 50, priority_group=1),
            scorable(2, content="Buy milk", quick_win=True),
            scorable(3, content="Read book", priority_group=4),
        ]
    )
    summary = build_summary(ranked)
    assert summary.startswith('Top focus: "' + "A" * 39 + '…", "Buy milk", "Read book".')
    assert "1 quick wins." in summary
    assert summary.endswith("Avg score 2.83.")


def test_summary_of_nothing():
    assert build_summary([]) == "No tasks to summarize"


def test_engine_persists_scores_and_metadata(storage):
    braindump_id = storage.create_braindump(
        "raw",
        [
            row("Plan launch", priority=5, priority_group=1),
            row("Vague heading", action="clarify"),
            row("Buy milk", priority=2, priority_group=4, quick_win=True),
            row("Write docs"),
        ],
    )
    result = ScoringEngine(storage).score(braindump_id)

    assert [t.content for t in result.ranking] == ["Plan launch", "Write docs", "Buy milk"]
    assert result.top3 == [1, 4, 3]
    assert storage.score_updates == [[(1, 5.0, 1), (4, 2.0, 2), (3, 1.25, 3)]]
    assert storage.task(2)["score"] is None

    metadata = storage.braindumps[braindump_id]["metadata"]
    assert metadata["top3"] == [1, 4, 3]
    assert metadata["scoring_summary"] == result.summary
    assert "scored_at" in metadata


def test_engine_with_no_scorable_tasks_writes_nothing(storage):
    braindump_id = storage.create_braindump("raw", [row("Heading", action="clarify")])
    result = ScoringEngine(storage).score(braindump_id)
    assert result.ranking == [] and result.top3 == []
    assert result.summary == NO_TASKS_SUMMARY
    assert storage.score_updates == []
    assert storage.braindumps[braindump_id]["metadata"] == {}


def test_engine_unknown_braindump(storage):
    with pytest.raises(BraindumpNotFound):
        ScoringEngine(storage).score("missing")


def test_rescoring_is_deterministic(storage):
    braindump_id = storage.create_braindump("raw", [row("One"), row("Two", priority_group=2)])
    engine = ScoringEngine(storage)
    first = engine.score(braindump_id)
    second = engine.score(braindump_id)
    assert [(t.id, t.score, t.overall_rank) for t in first.ranking] == [
        (t.id, t.score, t.overall_rank) for t in second.ranking
    ]
    assert first.summary == second.summary


def test_longevity_and_quick_win_alone_do_not_overtake_a_must_do():
    must = scorable(1, priority_group=1, longevity=0, quick_win=False)
    recurring = scorable(2, priority_group=4, longevity=10, quick_win=True)
    ranked = score_tasks([must, recurring])
    # (5 + 0) vs (1 + 10 / 10 * 2) * 1.25
    assert [(t.id, t.score) for t in ranked] == [(1, 5.0), (2, 3.75)]

    ranked = score_tasks([must, scorable(2, priority_group=4, longevity=10, quick_win=True, urgency_rank=1)])
    assert [(t.id, t.score) for t in ranked] == [(2, 7.5), (1, 5.0)]

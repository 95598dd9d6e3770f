from __future__ import annotations

from conftest import make_person
from staffing_engine.models import RequiredSkill
from staffing_engine.readiness import (
    NEARLY_READY,
    NO_REQUIREMENTS,
    NOT_READY,
    READY,
    project_readiness,
    skill_gap_analysis,
)


def _required(*pairs):
    return [RequiredSkill(sid, level, skill_name=sid.title()) for sid, level in pairs]


def test_gap_analysis_orders_least_covered_first() -> None:
    team = [
        make_person("a", {"js": "Expert", "sql": "Beginner"}),
        make_person("b", {"js": "Advanced"}),
    ]
    gaps = skill_gap_analysis(_required(("js", "Advanced"), ("sql", "Intermediate"), ("go", "Beginner")), team)
    assert [g.skill_id for g in gaps] == ["go", "sql", "js"]
    go, sql, js = gaps
    assert (go.allocated_with_skill, go.meeting_requirement) == (0, 0)
    assert (sql.allocated_with_skill, sql.meeting_requirement) == (1, 0)
    assert (js.allocated_with_skill, js.meeting_requirement) == (2, 2)
    assert sql.allocated_skills == ("Person a (Beginner)", "Person b (No skill)")
    assert not sql.covered


def test_readiness_status_thresholds() -> None:
    team = [make_person("a", {"s1": "Expert", "s2": "Expert", "s3": "Expert", "s4": "Expert"})]
    five = _required(*((f"s{i}", "Beginner") for i in range(1, 6)))

    nearly = project_readiness(five, team)
    assert nearly.status == NEARLY_READY
    assert nearly.covered_skills == 4
    assert nearly.readiness_percentage == 80.0

    ready = project_readiness(five[:4], team)
    assert ready.status == READY
    assert ready.readiness_percentage == 100.0

    not_ready = project_readiness(five, team[:0])
    assert not_ready.status == NOT_READY
    assert not_ready.readiness_percentage == 0.0


def test_readiness_without_requirements() -> None:
    result = project_readiness([], [make_person("a", {"js": "Expert"})])
    assert result.status == NO_REQUIREMENTS
    assert result.total_required_skills == 0


def test_readiness_uses_ordinal_comparison() -> None:
    team = [make_person("a", {"js": "Intermediate"})]
    result = project_readiness(_required(("js", "Advanced"), ("css", "Beginner")), team, nearly_ready_ratio=0.5)
    assert result.covered_skills == 0
    assert result.status == NOT_READY

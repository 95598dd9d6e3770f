from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import List

import pytest

from staffing_engine.models import (
    Allocation,
    AvailabilityPeriod,
    Personnel,
    PersonnelSkill,
    RequiredSkill,
)
from staffing_engine.scales import ProficiencyLevel


def make_person(
    personnel_id: str,
    skills: dict,
    *,
    experience: str = "Mid-Level",
    availability: tuple = (),
) -> Personnel:
    return Personnel(
        id=personnel_id,
        name=f"Person {personnel_id}",
        experience_level=experience,
        role_title="Engineer",
        skills=tuple(PersonnelSkill(skill_id=sid, proficiency_level=level) for sid, level in skills.items()),
        availability=availability,
    )


def make_allocation(
    personnel_id: str,
    pct: float,
    start: date,
    end: date,
    *,
    project_id: str = "P1",
    allocation_id: str | None = None,
) -> Allocation:
    return Allocation(
        project_id=project_id,
        personnel_id=personnel_id,
        allocation_percentage=pct,
        start_date=start,
        end_date=end,
        id=allocation_id,
    )


def make_period(
    personnel_id: str,
    start: date,
    end: date,
    pct: float = 100,
    *,
    period_id: str | None = None,
) -> AvailabilityPeriod:
    return AvailabilityPeriod(
        personnel_id=personnel_id,
        start_date=start,
        end_date=end,
        availability_percentage=pct,
        id=period_id,
    )


@pytest.fixture
def three_intermediate_skills() -> List[RequiredSkill]:
    return [
        RequiredSkill("S1", ProficiencyLevel.INTERMEDIATE, skill_name="Skill 1"),
        RequiredSkill("S2", ProficiencyLevel.INTERMEDIATE, skill_name="Skill 2"),
        RequiredSkill("S3", ProficiencyLevel.INTERMEDIATE, skill_name="Skill 3"),
    ]


def _write_snapshot(input_dir: Path) -> None:
    input_dir.mkdir(parents=True, exist_ok=True)
    (input_dir / "skills.csv").write_text(
        "id,name,category\n"
        "js,JavaScript,Programming\n"
        "react,React,Framework\n"
        "sql,SQL,Database\n"
    )
    (input_dir / "projects.csv").write_text(
        "id,name,start_date,end_date,status\n"
        "web,Web Portal,2025-03-01,2025-05-31,Active\n"
        "data,Data Platform,2025-06-01,2025-08-31,Planning\n"
        "idea,Someday,,,Planning\n"
    )
    (input_dir / "required_skills.csv").write_text(
        "project_id,skill_id,minimum_proficiency\n"
        "web,react,Intermediate\n"
        "web,js,Advanced\n"
        "data,sql,3\n"
    )
    personnel = [
        {
            "id": "alice",
            "name": "Alice",
            "experience_level": "Senior",
            "role_title": "Lead Developer",
            "skills": [
                {"skill_id": "js", "proficiency_level": "Expert", "years_of_experience": 8},
                {"skill_id": "react", "proficiency_level": "Advanced", "years_of_experience": 5},
            ],
        },
        {
            "id": "bob",
            "name": "Bob",
            "experience_level": "Junior",
            "role_title": "Developer",
            "skills": [
                {"skill_id": "js", "proficiency_level": "Intermediate"},
                {"skill_id": "react", "proficiency_level": 2},
            ],
        },
        {
            "id": "carol",
            "name": "Carol",
            "experience_level": "Mid-Level",
            "role_title": "Data Engineer",
            "skills": [{"skill_id": "sql", "proficiency_level": "Advanced"}],
        },
    ]
    (input_dir / "personnel.json").write_text(json.dumps(personnel))
    (input_dir / "availability.csv").write_text(
        "id,personnel_id,start_date,end_date,availability_percentage,notes\n"
        "a1,bob,2025-03-01,2025-03-31,50,Training\n"
        "a2,bob,2025-04-01,2025-05-31,100,\n"
        "a3,carol,2025-06-01,2025-06-30,40,Part time\n"
    )
    (input_dir / "allocations.csv").write_text(
        "id,project_id,personnel_id,allocation_percentage,start_date,end_date,role_in_project\n"
        "x1,web,alice,60,2025-03-01,2025-04-30,Lead\n"
        "x2,data,carol,50,2025-06-01,2025-08-31,\n"
    )


@pytest.fixture
def snapshot_dir(tmp_path: Path) -> Path:
    project_dir = tmp_path / "portfolio"
    _write_snapshot(project_dir / "input")
    return project_dir


@pytest.fixture
def input_dir(snapshot_dir: Path) -> Path:
    return snapshot_dir / "input"

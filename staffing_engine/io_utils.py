from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
from dateutil import parser as dateparser

from .availability import check_availability_overlap
from .errors import PreconditionError
from .models import (
    Allocation,
    AvailabilityPeriod,
    EngineConfig,
    Personnel,
    PersonnelSkill,
    Project,
    RequiredSkill,
    Skill,
    Snapshot,
)
from .scales import ExperienceLevel, ProficiencyLevel

LOGGER = logging.getLogger(__name__)

SKILLS_FILE = "skills.csv"
PERSONNEL_FILE = "personnel.json"
PROJECTS_FILE = "projects.csv"
REQUIRED_SKILLS_FILE = "required_skills.csv"
AVAILABILITY_FILE = "availability.csv"
ALLOCATIONS_FILE = "allocations.csv"
CONFIG_FILE = "config.json"

REQUIRED_INPUT_FILES = (SKILLS_FILE, PERSONNEL_FILE, PROJECTS_FILE, REQUIRED_SKILLS_FILE)

_SKILL_REQUIRED_COLUMNS = {"id", "name"}
_PROJECT_REQUIRED_COLUMNS = {"id", "name", "start_date", "end_date"}
_REQUIRED_SKILL_REQUIRED_COLUMNS = {"project_id", "skill_id", "minimum_proficiency"}
_AVAILABILITY_REQUIRED_COLUMNS = {"personnel_id", "start_date", "end_date", "availability_percentage"}
_ALLOCATION_REQUIRED_COLUMNS = {
    "project_id",
    "personnel_id",
    "allocation_percentage",
    "start_date",
    "end_date",
}


def _require_columns(df: pd.DataFrame, required: Iterable[str], source: str) -> None:
    missing = sorted(col for col in required if col not in df.columns)
    if missing:
        raise ValueError(f"{source} missing required columns: {', '.join(missing)}")


def _read_csv(path: str | Path) -> pd.DataFrame:
    return pd.read_csv(path, dtype=str)


def _is_missing(value: object) -> bool:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return True
    return isinstance(value, str) and value.strip() == ""


def _optional_str(value: object) -> Optional[str]:
    return None if _is_missing(value) else str(value).strip()


def _parse_date(value: object, field_name: str) -> date:
    if _is_missing(value):
        raise ValueError(f"'{field_name}' is required")
    if isinstance(value, date):
        return value
    try:
        return dateparser.isoparse(str(value)).date()
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid date in '{field_name}': {value}") from exc


def _parse_percentage_column(df: pd.DataFrame, column: str, source: str) -> None:
    try:
        df[column] = pd.to_numeric(df[column])
    except ValueError as exc:
        raise ValueError(f"invalid numeric value in {source} column '{column}'") from exc
    if df[column].isna().any():
        raise ValueError(f"{source} column '{column}' contains missing values")
    if ((df[column] < 0) | (df[column] > 100)).any():
        raise ValueError(f"{source} column '{column}' must be between 0 and 100")


def _parse_date_columns(df: pd.DataFrame, source: str) -> None:
    for column in ("start_date", "end_date"):
        df[column] = df[column].map(lambda value, name=column: _parse_date(value, f"{source}.{name}"))
    backwards = df[df["end_date"] < df["start_date"]]
    if not backwards.empty:
        row = backwards.index[0] + 1
        raise ValueError(f"{source} row {row}: end_date must not be earlier than start_date")


def _parse_proficiency(value: object, field_name: str) -> ProficiencyLevel:
    try:
        return ProficiencyLevel.parse(value)
    except PreconditionError as exc:
        raise ValueError(f"invalid proficiency in '{field_name}': {value!r}") from exc


def load_skills(path: str | Path) -> pd.DataFrame:
    df = _read_csv(path)
    _require_columns(df, _SKILL_REQUIRED_COLUMNS, SKILLS_FILE)
    if df["id"].duplicated().any():
        raise ValueError(f"{SKILLS_FILE} contains duplicate skill ids")
    if "category" not in df.columns:
        df["category"] = "Other"
    df["category"] = df["category"].fillna("Other")
    return df


def load_personnel(path: str | Path) -> pd.DataFrame:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, list):
        raise ValueError("personnel file must be a JSON array")
    rows = []
    seen_ids = set()
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError("personnel entries must be objects")
        personnel_id = entry.get("id")
        if _is_missing(personnel_id):
            raise ValueError("personnel id is required")
        personnel_id = str(personnel_id)
        if personnel_id in seen_ids:
            raise ValueError(f"duplicate personnel id {personnel_id}")
        seen_ids.add(personnel_id)
        name = entry.get("name")
        if not name or not isinstance(name, str):
            raise ValueError(f"name is required for personnel {personnel_id}")
        skills_raw = entry.get("skills", [])
        if not isinstance(skills_raw, list):
            raise ValueError(f"skills must be an array for {name}")
        skills = []
        held = set()
        for skill in skills_raw:
            if not isinstance(skill, dict) or _is_missing(skill.get("skill_id")):
                raise ValueError(f"every skill for {name} needs a skill_id")
            skill_id = str(skill["skill_id"])
            if skill_id in held:
                raise ValueError(f"skill {skill_id} listed twice for {name}")
            held.add(skill_id)
            years = skill.get("years_of_experience", 0) or 0
            if not isinstance(years, (int, float)) or years < 0:
                raise ValueError(f"years_of_experience must be a non-negative number for {name}")
            skills.append(
                {
                    "skill_id": skill_id,
                    "proficiency_level": _parse_proficiency(
                        skill.get("proficiency_level"), f"{name}.proficiency_level"
                    ),
                    "years_of_experience": float(years),
                }
            )
        experience = _optional_str(entry.get("experience_level"))
        if experience is not None and ExperienceLevel.lookup(experience) is None:
            LOGGER.warning("unknown experience level %r for %s; it will rank lowest", experience, name)
        rows.append(
            {
                "id": personnel_id,
                "name": name,
                "experience_level": experience,
                "role_title": str(entry.get("role_title", "") or ""),
                "skills": tuple(skills),
            }
        )
    return pd.DataFrame(rows, columns=["id", "name", "experience_level", "role_title", "skills"])


def load_projects(path: str | Path) -> pd.DataFrame:
    df = _read_csv(path)
    _require_columns(df, _PROJECT_REQUIRED_COLUMNS, PROJECTS_FILE)
    if df["id"].duplicated().any():
        raise ValueError(f"{PROJECTS_FILE} contains duplicate project ids")
    # projects may be undated; matching then falls back to default availability
    for column in ("start_date", "end_date"):
        df[column] = df[column].map(
            lambda value, name=column: None
            if _is_missing(value)
            else _parse_date(value, f"{PROJECTS_FILE}.{name}")
        )
    for idx, row in enumerate(df.itertuples(index=False), start=1):
        if _is_missing(row.start_date) or _is_missing(row.end_date):
            continue
        if row.end_date < row.start_date:
            raise ValueError(f"{PROJECTS_FILE} row {idx}: end_date must not be earlier than start_date")
    if "status" not in df.columns:
        df["status"] = "Planning"
    df["status"] = df["status"].fillna("Planning")
    return df


def load_required_skills(path: str | Path) -> pd.DataFrame:
    df = _read_csv(path)
    _require_columns(df, _REQUIRED_SKILL_REQUIRED_COLUMNS, REQUIRED_SKILLS_FILE)
    if df.duplicated(subset=["project_id", "skill_id"]).any():
        raise ValueError(f"{REQUIRED_SKILLS_FILE} lists a skill more than once for the same project")
    df["minimum_proficiency"] = df["minimum_proficiency"].map(
        lambda value: _parse_proficiency(value, "minimum_proficiency")
    )
    return df


def load_availability(path: str | Path) -> pd.DataFrame:
    df = _read_csv(path)
    _require_columns(df, _AVAILABILITY_REQUIRED_COLUMNS, AVAILABILITY_FILE)
    _parse_percentage_column(df, "availability_percentage", AVAILABILITY_FILE)
    _parse_date_columns(df, AVAILABILITY_FILE)
    if "notes" not in df.columns:
        df["notes"] = ""
    if "id" not in df.columns:
        df["id"] = [str(idx + 1) for idx in range(len(df))]
    return df


def load_allocations(path: str | Path) -> pd.DataFrame:
    df = _read_csv(path)
    _require_columns(df, _ALLOCATION_REQUIRED_COLUMNS, ALLOCATIONS_FILE)
    _parse_percentage_column(df, "allocation_percentage", ALLOCATIONS_FILE)
    _parse_date_columns(df, ALLOCATIONS_FILE)
    if "role_in_project" not in df.columns:
        df["role_in_project"] = None
    if "id" not in df.columns:
        df["id"] = [str(idx + 1) for idx in range(len(df))]
    return df


def _skills_from_df(df: pd.DataFrame) -> Dict[str, Skill]:
    return {
        str(row.id): Skill(id=str(row.id), name=str(row.name), category=str(row.category))
        for row in df.itertuples(index=False)
    }


def _availability_from_df(df: pd.DataFrame, personnel_ids: Iterable[str]) -> Dict[str, List[AvailabilityPeriod]]:
    known = set(personnel_ids)
    periods: Dict[str, List[AvailabilityPeriod]] = defaultdict(list)
    for idx, row in enumerate(df.itertuples(index=False), start=1):
        personnel_id = str(row.personnel_id)
        if personnel_id not in known:
            raise ValueError(f"{AVAILABILITY_FILE} references unknown personnel {personnel_id}")
        period = AvailabilityPeriod(
            personnel_id=personnel_id,
            start_date=row.start_date,
            end_date=row.end_date,
            availability_percentage=float(row.availability_percentage),
            notes=_optional_str(row.notes) or "",
            id=_optional_str(row.id),
        )
        decision = check_availability_overlap(periods[personnel_id], replace(period, id=None))
        if not decision.accepted:
            raise ValueError(
                f"{AVAILABILITY_FILE} row {idx}: period {period.window} for personnel {personnel_id} "
                f"overlaps {decision.conflicting_period.window}"
            )
        periods[personnel_id].append(period)
    for rows in periods.values():
        rows.sort(key=lambda p: p.start_date)
    return periods


def _allocations_from_df(
    df: pd.DataFrame,
    personnel_ids: Iterable[str],
    project_ids: Iterable[str],
) -> Dict[str, List[Allocation]]:
    known_personnel = set(personnel_ids)
    known_projects = set(project_ids)
    allocations: Dict[str, List[Allocation]] = defaultdict(list)
    for row in df.itertuples(index=False):
        personnel_id = str(row.personnel_id)
        project_id = str(row.project_id)
        if personnel_id not in known_personnel:
            raise ValueError(f"{ALLOCATIONS_FILE} references unknown personnel {personnel_id}")
        if project_id not in known_projects:
            raise ValueError(f"{ALLOCATIONS_FILE} references unknown project {project_id}")
        allocations[personnel_id].append(
            Allocation(
                project_id=project_id,
                personnel_id=personnel_id,
                allocation_percentage=float(row.allocation_percentage),
                start_date=row.start_date,
                end_date=row.end_date,
                role_in_project=_optional_str(row.role_in_project),
                id=_optional_str(row.id),
            )
        )
    for rows in allocations.values():
        rows.sort(key=lambda a: a.start_date)
    return allocations


def build_snapshot(
    skills_df: pd.DataFrame,
    personnel_df: pd.DataFrame,
    projects_df: pd.DataFrame,
    required_skills_df: pd.DataFrame,
    availability_df: Optional[pd.DataFrame] = None,
    allocations_df: Optional[pd.DataFrame] = None,
) -> Snapshot:
    skills = _skills_from_df(skills_df)

    projects: Dict[str, Project] = {}
    for row in projects_df.itertuples(index=False):
        projects[str(row.id)] = Project(
            id=str(row.id),
            name=str(row.name),
            start_date=None if _is_missing(row.start_date) else row.start_date,
            end_date=None if _is_missing(row.end_date) else row.end_date,
            status=str(row.status),
        )

    required: Dict[str, List[RequiredSkill]] = defaultdict(list)
    for row in required_skills_df.itertuples(index=False):
        project_id = str(row.project_id)
        skill_id = str(row.skill_id)
        if project_id not in projects:
            raise ValueError(f"{REQUIRED_SKILLS_FILE} references unknown project {project_id}")
        if skill_id not in skills:
            raise ValueError(f"{REQUIRED_SKILLS_FILE} references unknown skill {skill_id}")
        required[project_id].append(
            RequiredSkill(
                skill_id=skill_id,
                minimum_proficiency=row.minimum_proficiency,
                skill_name=skills[skill_id].name,
                project_id=project_id,
            )
        )
    for rows in required.values():
        rows.sort(key=lambda r: r.skill_name)

    personnel_ids = [str(value) for value in personnel_df["id"]]
    availability = (
        _availability_from_df(availability_df, personnel_ids) if availability_df is not None else {}
    )
    allocations = (
        _allocations_from_df(allocations_df, personnel_ids, projects.keys())
        if allocations_df is not None
        else {}
    )

    personnel: Dict[str, Personnel] = {}
    for row in personnel_df.itertuples(index=False):
        personnel_id = str(row.id)
        held = []
        for skill in row.skills:
            if skill["skill_id"] not in skills:
                raise ValueError(f"personnel {personnel_id} holds unknown skill {skill['skill_id']}")
            held.append(
                PersonnelSkill(
                    skill_id=skill["skill_id"],
                    proficiency_level=skill["proficiency_level"],
                    years_of_experience=skill["years_of_experience"],
                    skill_name=skills[skill["skill_id"]].name,
                    personnel_id=personnel_id,
                )
            )
        personnel[personnel_id] = Personnel(
            id=personnel_id,
            name=str(row.name),
            experience_level=_optional_str(row.experience_level),
            role_title=str(row.role_title),
            skills=tuple(held),
            availability=tuple(availability.get(personnel_id, ())),
        )

    return Snapshot(
        skills=skills,
        personnel=personnel,
        projects=projects,
        required_skills=dict(required),
        allocations=dict(allocations),
    )


def load_snapshot(input_dir: str | Path) -> Snapshot:
    base = Path(input_dir)
    missing = [name for name in REQUIRED_INPUT_FILES if not (base / name).is_file()]
    if missing:
        raise ValueError(f"input directory {base} is missing: {', '.join(missing)}")
    availability_path = base / AVAILABILITY_FILE
    allocations_path = base / ALLOCATIONS_FILE
    return build_snapshot(
        load_skills(base / SKILLS_FILE),
        load_personnel(base / PERSONNEL_FILE),
        load_projects(base / PROJECTS_FILE),
        load_required_skills(base / REQUIRED_SKILLS_FILE),
        load_availability(availability_path) if availability_path.is_file() else None,
        load_allocations(allocations_path) if allocations_path.is_file() else None,
    )


def _number(data: dict, key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def load_config(path: str | Path) -> EngineConfig:
    config_path = Path(path)
    if not config_path.is_file():
        return EngineConfig()
    data = json.loads(config_path.read_text())
    if not isinstance(data, dict):
        raise ValueError("config must be a JSON object")

    logging_level = data.get("logging_level", "INFO")
    if not isinstance(logging_level, str):
        raise ValueError("logging_level must be a string")

    capacity_limit = _number(data, "capacity_limit_pct", 100.0)
    if not (0 < capacity_limit <= 100):
        raise ValueError("capacity_limit_pct must be in (0, 100]")

    default_availability = _number(data, "default_availability_pct", 100.0)
    if not (0 <= default_availability <= 100):
        raise ValueError("default_availability_pct must be in [0, 100]")

    nearly_ready_ratio = _number(data, "readiness_nearly_ready_ratio", 0.8)
    if not (0 < nearly_ready_ratio <= 1):
        raise ValueError("readiness_nearly_ready_ratio must be in (0, 1]")

    display_cap = _number(data, "utilization_display_cap_pct", 200.0)
    if display_cap < 100:
        raise ValueError("utilization_display_cap_pct must be at least 100")

    months = data.get("utilization_months", 3)
    if isinstance(months, bool) or not isinstance(months, int) or months <= 0:
        raise ValueError("utilization_months must be a positive integer")

    return EngineConfig(
        logging_level=logging_level,
        capacity_limit_pct=capacity_limit,
        default_availability_pct=default_availability,
        readiness_nearly_ready_ratio=nearly_ready_ratio,
        utilization_display_cap_pct=display_cap,
        utilization_months=months,
    )


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def parse_cli_date(value: str) -> date:
    """argparse ``type=`` hook for ISO dates."""
    return _parse_date(value, "date")

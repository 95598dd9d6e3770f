from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from .errors import PreconditionError, UnknownRecordError
from .intervals import DateRange
from .scales import ProficiencyLevel, experience_label

MAX_PERCENTAGE = 100


def _check_percentage(value: float, field_name: str) -> None:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PreconditionError(f"{field_name} must be a number, got {value!r}")
    if value < 0 or value > MAX_PERCENTAGE:
        raise PreconditionError(f"{field_name} must be between 0 and 100, got {value}")


@dataclass(frozen=True)
class Skill:
    id: str
    name: str
    category: str = "Other"


@dataclass(frozen=True)
class RequiredSkill:
    """Demand side of matching: a project needs ``skill_id`` at ``minimum_proficiency`` or better."""

    skill_id: str
    minimum_proficiency: ProficiencyLevel
    skill_name: str = ""
    project_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.skill_id is None:
            raise PreconditionError("required skill is missing skill_id")
        object.__setattr__(self, "minimum_proficiency", ProficiencyLevel.parse(self.minimum_proficiency))


@dataclass(frozen=True)
class PersonnelSkill:
    skill_id: str
    proficiency_level: ProficiencyLevel
    years_of_experience: float = 0.0
    skill_name: str = ""
    personnel_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.skill_id is None:
            raise PreconditionError("personnel skill is missing skill_id")
        object.__setattr__(self, "proficiency_level", ProficiencyLevel.parse(self.proficiency_level))
        if self.years_of_experience < 0:
            raise PreconditionError(
                f"years_of_experience must be non-negative for skill {self.skill_id}"
            )


@dataclass(frozen=True)
class AvailabilityPeriod:
    personnel_id: str
    start_date: date
    end_date: date
    availability_percentage: float = 100
    notes: str = ""
    id: Optional[str] = None

    def __post_init__(self) -> None:
        _check_percentage(self.availability_percentage, "availability_percentage")
        DateRange(self.start_date, self.end_date)

    @property
    def window(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)


@dataclass(frozen=True)
class Allocation:
    project_id: str
    personnel_id: str
    allocation_percentage: float
    start_date: date
    end_date: date
    role_in_project: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self) -> None:
        _check_percentage(self.allocation_percentage, "allocation_percentage")
        DateRange(self.start_date, self.end_date)

    @property
    def window(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "personnel_id": self.personnel_id,
            "allocation_percentage": self.allocation_percentage,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "role_in_project": self.role_in_project,
        }


@dataclass(frozen=True)
class Personnel:
    """Candidate pool entry; ``experience_level`` keeps the raw label so unknown values rank lowest."""

    id: str
    name: str
    experience_level: Optional[str]
    role_title: str = ""
    skills: Tuple[PersonnelSkill, ...] = ()
    availability: Tuple[AvailabilityPeriod, ...] = ()


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    start_date: Optional[date]
    end_date: Optional[date]
    status: str = "Planning"

    @property
    def window(self) -> Optional[DateRange]:
        if self.start_date is None or self.end_date is None:
            return None
        return DateRange(self.start_date, self.end_date)


@dataclass(frozen=True)
class MatchFilters:
    experience_level: Optional[str] = None
    minimum_availability_percentage: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "experience_level", experience_label(self.experience_level))
        if self.minimum_availability_percentage is not None:
            _check_percentage(self.minimum_availability_percentage, "minimum_availability_percentage")


@dataclass(frozen=True)
class EngineConfig:
    logging_level: str = "INFO"
    capacity_limit_pct: float = 100.0
    default_availability_pct: float = 100.0
    readiness_nearly_ready_ratio: float = 0.8
    utilization_display_cap_pct: float = 200.0
    utilization_months: int = 3


@dataclass
class Snapshot:
    """Read-only view of the records the engine works on, keyed once per load."""

    skills: Dict[str, Skill] = field(default_factory=dict)
    personnel: Dict[str, Personnel] = field(default_factory=dict)
    projects: Dict[str, Project] = field(default_factory=dict)
    required_skills: Dict[str, List[RequiredSkill]] = field(default_factory=dict)
    allocations: Dict[str, List[Allocation]] = field(default_factory=dict)

    def get_project(self, project_id: str) -> Project:
        try:
            return self.projects[str(project_id)]
        except KeyError:
            raise UnknownRecordError("project", project_id) from None

    def get_personnel(self, personnel_id: str) -> Personnel:
        try:
            return self.personnel[str(personnel_id)]
        except KeyError:
            raise UnknownRecordError("personnel", personnel_id) from None

    def required_skills_for(self, project_id: str) -> List[RequiredSkill]:
        return list(self.required_skills.get(str(project_id), []))

    def allocations_for(self, personnel_id: str) -> List[Allocation]:
        return list(self.allocations.get(str(personnel_id), []))

    def project_allocations(self, project_id: str) -> List[Allocation]:
        return [
            allocation
            for rows in self.allocations.values()
            for allocation in rows
            if allocation.project_id == str(project_id)
        ]

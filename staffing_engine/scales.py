from __future__ import annotations

from enum import IntEnum
from typing import Dict, Optional, Union

from .errors import PreconditionError


class ProficiencyLevel(IntEnum):
    BEGINNER = 1
    INTERMEDIATE = 2
    ADVANCED = 3
    EXPERT = 4

    @property
    def label(self) -> str:
        return _PROFICIENCY_LABELS[self]

    @classmethod
    def parse(cls, value: Union["ProficiencyLevel", int, str]) -> "ProficiencyLevel":
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise PreconditionError(f"invalid proficiency level: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError as exc:
                raise PreconditionError(f"invalid proficiency level: {value!r}") from exc
        if isinstance(value, str):
            key = value.strip().lower()
            if key.isdigit():
                return cls.parse(int(key))
            for member, label in _PROFICIENCY_LABELS.items():
                if label.lower() == key:
                    return member
        raise PreconditionError(f"invalid proficiency level: {value!r}")


_PROFICIENCY_LABELS: Dict[ProficiencyLevel, str] = {
    ProficiencyLevel.BEGINNER: "Beginner",
    ProficiencyLevel.INTERMEDIATE: "Intermediate",
    ProficiencyLevel.ADVANCED: "Advanced",
    ProficiencyLevel.EXPERT: "Expert",
}


class ExperienceLevel(IntEnum):
    JUNIOR = 1
    MID_LEVEL = 2
    SENIOR = 3

    @property
    def label(self) -> str:
        return _EXPERIENCE_LABELS[self]

    @classmethod
    def lookup(cls, value: object) -> Optional["ExperienceLevel"]:
        """Return the matching level, or None when the value is missing or unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member, label in _EXPERIENCE_LABELS.items():
                if label.lower() == key:
                    return member
        return None


_EXPERIENCE_LABELS: Dict[ExperienceLevel, str] = {
    ExperienceLevel.JUNIOR: "Junior",
    ExperienceLevel.MID_LEVEL: "Mid-Level",
    ExperienceLevel.SENIOR: "Senior",
}


def experience_ordinal(value: object) -> int:
    level = ExperienceLevel.lookup(value)
    return int(level) if level is not None else 0


def experience_label(value: object) -> Optional[str]:
    """Normalise a filter value to the label stored on personnel rows."""
    if value is None:
        return None
    level = ExperienceLevel.lookup(value)
    if level is not None:
        return level.label
    return str(value).strip()


def meets(actual: Optional[ProficiencyLevel], required: ProficiencyLevel) -> bool:
    if actual is None:
        return False
    return int(actual) >= int(required)

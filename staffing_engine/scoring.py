from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import PreconditionError
from .models import PersonnelSkill, RequiredSkill
from .scales import ProficiencyLevel, meets


@dataclass(frozen=True)
class SkillOutcome:
    skill_id: str
    skill_name: str
    required: ProficiencyLevel
    actual: Optional[ProficiencyLevel]
    meets: bool

    @property
    def held(self) -> bool:
        return self.actual is not None


@dataclass(frozen=True)
class SkillMatch:
    match_count: int
    match_score: int
    outcomes: Tuple[SkillOutcome, ...]

    @property
    def total_required(self) -> int:
        return len(self.outcomes)

    @property
    def is_eligible(self) -> bool:
        return self.match_count > 0


def _percentage(count: int, total: int) -> int:
    # integer round-half-up of count / total * 100
    return (200 * count + total) // (2 * total)


def _index_personnel_skills(personnel_skills: Iterable[PersonnelSkill]) -> Dict[str, PersonnelSkill]:
    index: Dict[str, PersonnelSkill] = {}
    for skill in personnel_skills:
        if skill.skill_id in index:
            raise PreconditionError(f"personnel skill {skill.skill_id!r} listed more than once")
        index[skill.skill_id] = skill
    return index


def _check_required(required_skills: Sequence[RequiredSkill]) -> None:
    if not required_skills:
        raise PreconditionError("cannot score against an empty required-skill list")
    seen = set()
    for required in required_skills:
        if required.skill_id in seen:
            raise PreconditionError(f"required skill {required.skill_id!r} listed more than once")
        seen.add(required.skill_id)


def score_candidate(
    required_skills: Sequence[RequiredSkill],
    personnel_skills: Iterable[PersonnelSkill],
) -> SkillMatch:
    """Compare one personnel's skills against a project's requirements.

    Holding a required skill below its minimum proficiency shows up in the
    outcomes with ``meets=False`` and does not count towards the score.
    """
    _check_required(required_skills)
    held = _index_personnel_skills(personnel_skills)
    outcomes: List[SkillOutcome] = []
    match_count = 0
    for required in required_skills:
        personnel_skill = held.get(required.skill_id)
        actual = personnel_skill.proficiency_level if personnel_skill else None
        satisfied = meets(actual, required.minimum_proficiency)
        if satisfied:
            match_count += 1
        name = required.skill_name or (personnel_skill.skill_name if personnel_skill else "")
        outcomes.append(
            SkillOutcome(
                skill_id=required.skill_id,
                skill_name=name or str(required.skill_id),
                required=required.minimum_proficiency,
                actual=actual,
                meets=satisfied,
            )
        )
    return SkillMatch(
        match_count=match_count,
        match_score=_percentage(match_count, len(required_skills)),
        outcomes=tuple(outcomes),
    )

"""Coverage of a project's required skills by the personnel already allocated to it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .models import Personnel, RequiredSkill
from .scales import meets

READY = "Ready"
NEARLY_READY = "Nearly Ready"
NOT_READY = "Not Ready"
NO_REQUIREMENTS = "No Requirements Defined"

NEARLY_READY_RATIO = 0.8


@dataclass(frozen=True)
class SkillGap:
    skill_id: str
    skill_name: str
    required: str
    allocated_with_skill: int
    meeting_requirement: int
    allocated_skills: Tuple[str, ...]

    @property
    def covered(self) -> bool:
        return self.meeting_requirement > 0


@dataclass(frozen=True)
class ProjectReadiness:
    total_required_skills: int
    covered_skills: int
    readiness_percentage: float
    status: str
    gaps: Tuple[SkillGap, ...]


def skill_gap_analysis(
    required_skills: Sequence[RequiredSkill],
    allocated_personnel: Iterable[Personnel],
) -> List[SkillGap]:
    """Per required skill, who on the team holds it and who meets the minimum.

    Least-covered skills come first, then by name.
    """
    team = list(allocated_personnel)
    gaps: List[SkillGap] = []
    for required in required_skills:
        holding = 0
        meeting = 0
        labels: List[str] = []
        for person in team:
            held = next((s for s in person.skills if s.skill_id == required.skill_id), None)
            if held is None:
                labels.append(f"{person.name} (No skill)")
                continue
            holding += 1
            labels.append(f"{person.name} ({held.proficiency_level.label})")
            if meets(held.proficiency_level, required.minimum_proficiency):
                meeting += 1
        gaps.append(
            SkillGap(
                skill_id=required.skill_id,
                skill_name=required.skill_name or str(required.skill_id),
                required=required.minimum_proficiency.label,
                allocated_with_skill=holding,
                meeting_requirement=meeting,
                allocated_skills=tuple(labels),
            )
        )
    gaps.sort(key=lambda gap: (gap.meeting_requirement, gap.skill_name))
    return gaps


def project_readiness(
    required_skills: Sequence[RequiredSkill],
    allocated_personnel: Iterable[Personnel],
    *,
    nearly_ready_ratio: float = NEARLY_READY_RATIO,
) -> ProjectReadiness:
    gaps = tuple(skill_gap_analysis(required_skills, allocated_personnel))
    total = len(gaps)
    if total == 0:
        return ProjectReadiness(0, 0, 0.0, NO_REQUIREMENTS, gaps)
    covered = sum(1 for gap in gaps if gap.covered)
    if covered == total:
        status = READY
    elif covered >= total * nearly_ready_ratio:
        status = NEARLY_READY
    else:
        status = NOT_READY
    return ProjectReadiness(
        total_required_skills=total,
        covered_skills=covered,
        readiness_percentage=round(covered * 100.0 / total, 2),
        status=status,
        gaps=gaps,
    )

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .availability import DEFAULT_AVAILABILITY_PCT, coarse_availability
from .errors import PreconditionError
from .intervals import DateRange, round_half_up
from .models import MatchFilters, Personnel, RequiredSkill, Snapshot
from .scales import experience_label, experience_ordinal
from .scoring import SkillOutcome, score_candidate

LOGGER = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "rank",
    "personnel_id",
    "name",
    "role_title",
    "experience_level",
    "match_score",
    "match_count",
    "availability",
    "skills_met",
    "skills_missing",
]


@dataclass(frozen=True)
class CandidateMatchResult:
    personnel_id: str
    name: str
    role_title: str
    experience_level: Optional[str]
    match_score: int
    match_count: int
    matching_skills: Tuple[SkillOutcome, ...]
    availability: int

    def sort_key(self) -> Tuple[int, int, int]:
        return (-self.match_score, -experience_ordinal(self.experience_level), -self.availability)


@dataclass(frozen=True)
class RankingResult:
    required_skills: Tuple[RequiredSkill, ...]
    candidates: Tuple[CandidateMatchResult, ...]
    project_id: Optional[str] = None
    project_name: Optional[str] = None

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for rank, candidate in enumerate(self.candidates, start=1):
            met = [o.skill_name for o in candidate.matching_skills if o.meets]
            missing = [
                f"{o.skill_name} ({o.actual.label if o.actual else 'none'} < {o.required.label})"
                for o in candidate.matching_skills
                if not o.meets
            ]
            rows.append(
                {
                    "rank": rank,
                    "personnel_id": candidate.personnel_id,
                    "name": candidate.name,
                    "role_title": candidate.role_title,
                    "experience_level": candidate.experience_level or "",
                    "match_score": candidate.match_score,
                    "match_count": candidate.match_count,
                    "availability": candidate.availability,
                    "skills_met": "; ".join(met),
                    "skills_missing": "; ".join(missing),
                }
            )
        return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def _passes_filters(candidate: CandidateMatchResult, filters: MatchFilters) -> bool:
    # compare normalised labels so "senior" and "Senior" are the same level
    if (
        filters.experience_level is not None
        and experience_label(candidate.experience_level) != filters.experience_level
    ):
        return False
    threshold = filters.minimum_availability_percentage
    if threshold is not None and candidate.availability < threshold:
        return False
    return True


def rank_candidates(
    required_skills: Sequence[RequiredSkill],
    candidates: Iterable[Personnel],
    project_window: Optional[DateRange],
    filters: Optional[MatchFilters] = None,
    *,
    default_availability: float = DEFAULT_AVAILABILITY_PCT,
) -> RankingResult:
    """Score, filter and order a candidate pool for one project.

    Candidates meeting none of the required skills are dropped. The remaining
    ones are ordered by match score, then experience, then availability, all
    descending; full ties keep their input order.
    """
    filters = filters or MatchFilters()
    matched: List[CandidateMatchResult] = []
    dropped = 0
    for personnel in candidates:
        match = score_candidate(required_skills, personnel.skills)
        if not match.is_eligible:
            dropped += 1
            continue
        if project_window is None:
            availability = round_half_up(default_availability)
        else:
            availability = coarse_availability(
                personnel.availability,
                project_window.start,
                project_window.end,
                default=default_availability,
            )
        result = CandidateMatchResult(
            personnel_id=personnel.id,
            name=personnel.name,
            role_title=personnel.role_title,
            experience_level=personnel.experience_level,
            match_score=match.match_score,
            match_count=match.match_count,
            matching_skills=match.outcomes,
            availability=availability,
        )
        if _passes_filters(result, filters):
            matched.append(result)
        else:
            dropped += 1
    # list.sort is stable, so full ties stay in input order
    matched.sort(key=CandidateMatchResult.sort_key)
    LOGGER.debug("ranked %d candidate(s), dropped %d", len(matched), dropped)
    return RankingResult(required_skills=tuple(required_skills), candidates=tuple(matched))


def rank_project(
    snapshot: Snapshot,
    project_id: str,
    filters: Optional[MatchFilters] = None,
    *,
    default_availability: float = DEFAULT_AVAILABILITY_PCT,
) -> RankingResult:
    project = snapshot.get_project(project_id)
    required_skills = snapshot.required_skills_for(project.id)
    if not required_skills:
        raise PreconditionError(f"project {project.id} has no required skills defined")
    result = rank_candidates(
        required_skills,
        snapshot.personnel.values(),
        project.window,
        filters,
        default_availability=default_availability,
    )
    LOGGER.info(
        "project %s (%s): %d matching candidate(s)", project.id, project.name, len(result.candidates)
    )
    return replace(result, project_id=project.id, project_name=project.name)

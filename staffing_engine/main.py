from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

from .allocation import evaluate_allocation
from .availability import check_availability_overlap, coarse_availability, weighted_availability
from .errors import ConflictError, UnknownRecordError
from .io_utils import (
    CONFIG_FILE,
    ensure_directory,
    load_config,
    load_snapshot,
    parse_cli_date,
    write_csv,
)
from .models import Allocation, AvailabilityPeriod, EngineConfig, MatchFilters, Snapshot
from .ranking import RankingResult, rank_project
from .readiness import project_readiness
from .utilization import personnel_utilization, team_utilization, team_utilization_frame


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Skill matching and allocation checks over a staffing snapshot (CSV/JSON in, CSV out)."
    )
    parser.add_argument(
        "--project-dir",
        help="Directory containing input/ and output/ subfolders",
    )
    parser.add_argument("--input-dir", help="Directory holding the snapshot files (overrides project-dir default)")
    parser.add_argument("--config", help="Path to configuration JSON file (overrides project-dir default)")
    parser.add_argument(
        "--outdir",
        default=None,
        help="Output directory for generated CSV files (default: <project-dir>/output or ./out)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print results without writing output CSV files",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    match = commands.add_parser("match", help="Rank personnel against a project's required skills")
    match.add_argument("--project", required=True, help="Project id")
    match.add_argument("--experience-level", help="Keep only this experience level (e.g. Senior)")
    match.add_argument(
        "--min-availability",
        type=float,
        help="Keep only candidates at least this available over the project window",
    )

    availability = commands.add_parser("availability", help="Report availability over a window")
    availability.add_argument("--personnel", required=True)
    availability.add_argument("--start", required=True, type=parse_cli_date)
    availability.add_argument("--end", required=True, type=parse_cli_date)
    availability.add_argument("--mode", choices=("weighted", "coarse"), default="weighted")

    check_alloc = commands.add_parser("check-allocation", help="Validate a proposed allocation")
    check_alloc.add_argument("--personnel", required=True)
    check_alloc.add_argument("--project", required=True)
    check_alloc.add_argument("--percentage", required=True, type=float)
    check_alloc.add_argument("--start", required=True, type=parse_cli_date)
    check_alloc.add_argument("--end", required=True, type=parse_cli_date)
    check_alloc.add_argument("--role", help="Role label for the allocation")
    check_alloc.add_argument("--allocation-id", help="Id of the allocation being updated")

    check_avail = commands.add_parser("check-availability", help="Validate a proposed availability period")
    check_avail.add_argument("--personnel", required=True)
    check_avail.add_argument("--start", required=True, type=parse_cli_date)
    check_avail.add_argument("--end", required=True, type=parse_cli_date)
    check_avail.add_argument("--percentage", type=float, default=100.0)
    check_avail.add_argument("--period-id", help="Id of the period being updated")

    utilization = commands.add_parser("utilization", help="Allocation utilisation report")
    utilization.add_argument("--personnel", help="Report a single personnel instead of the whole team")
    utilization.add_argument("--start", type=parse_cli_date)
    utilization.add_argument("--end", type=parse_cli_date)
    utilization.add_argument("--months", type=int, help="Team report horizon in months")

    readiness = commands.add_parser("readiness", help="Skill coverage of a project's allocated team")
    readiness.add_argument("--project", required=True)
    return parser


def _resolve_io_paths(args: argparse.Namespace) -> Tuple[Path, Path, Path]:
    project_dir = Path(args.project_dir).resolve() if args.project_dir else None
    if project_dir and not project_dir.exists():
        raise ValueError(f"project directory not found: {project_dir}")
    if args.input_dir:
        input_dir = Path(args.input_dir)
    elif project_dir:
        input_dir = project_dir / "input"
    else:
        raise ValueError("missing required input path: --input-dir (or provide --project-dir)")
    if not input_dir.is_dir():
        raise ValueError(f"input directory not found at {input_dir}")

    config_path = Path(args.config) if args.config else input_dir / CONFIG_FILE

    if args.outdir:
        outdir = Path(args.outdir)
    elif project_dir:
        outdir = project_dir / "output"
    else:
        outdir = Path("out")
    return input_dir, config_path, outdir


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _print_matches(result: RankingResult) -> None:
    print(f"Project {result.project_id} {result.project_name}")
    required = ", ".join(f"{rs.skill_name} ({rs.minimum_proficiency.label})" for rs in result.required_skills)
    print(f"Required skills: {required}")
    if not result.candidates:
        print("No matching personnel.")
        return
    for rank, candidate in enumerate(result.candidates, start=1):
        experience = candidate.experience_level or "unknown"
        print(
            f"{rank}. {candidate.name} [{experience}] score {candidate.match_score}% "
            f"({candidate.match_count}/{len(result.required_skills)} skills), "
            f"availability {candidate.availability}%"
        )


def _write_output(df: pd.DataFrame, outdir: Path, name: str, dry_run: bool) -> None:
    if dry_run:
        return
    path = ensure_directory(outdir) / name
    write_csv(df, path)
    print(f"Wrote {path}")


def _run_match(args: argparse.Namespace, snapshot: Snapshot, cfg: EngineConfig, outdir: Path) -> None:
    filters = MatchFilters(
        experience_level=args.experience_level,
        minimum_availability_percentage=args.min_availability,
    )
    result = rank_project(
        snapshot, args.project, filters, default_availability=cfg.default_availability_pct
    )
    _print_matches(result)
    _write_output(result.to_frame(), outdir, f"matches_{result.project_id}.csv", args.dry_run)


def _run_availability(args: argparse.Namespace, snapshot: Snapshot, cfg: EngineConfig) -> None:
    personnel = snapshot.get_personnel(args.personnel)
    compute = weighted_availability if args.mode == "weighted" else coarse_availability
    value = compute(personnel.availability, args.start, args.end, default=cfg.default_availability_pct)
    print(
        f"{personnel.name}: {value}% available {args.start.isoformat()}..{args.end.isoformat()} "
        f"({args.mode})"
    )


def _run_check_allocation(args: argparse.Namespace, snapshot: Snapshot, cfg: EngineConfig) -> None:
    personnel = snapshot.get_personnel(args.personnel)
    project = snapshot.get_project(args.project)
    proposed = Allocation(
        project_id=project.id,
        personnel_id=personnel.id,
        allocation_percentage=args.percentage,
        start_date=args.start,
        end_date=args.end,
        role_in_project=args.role,
        id=args.allocation_id,
    )
    decision = evaluate_allocation(
        proposed,
        snapshot.allocations_for(personnel.id),
        personnel.availability,
        capacity_limit=cfg.capacity_limit_pct,
        default_availability=cfg.default_availability_pct,
    )
    decision.raise_for_conflict()
    print(
        f"Accepted: {personnel.name} at {args.percentage:g}% on {project.name} "
        f"({proposed.window}); concurrent total {decision.total:g}%"
    )


def _run_check_availability(args: argparse.Namespace, snapshot: Snapshot) -> None:
    personnel = snapshot.get_personnel(args.personnel)
    proposed = AvailabilityPeriod(
        personnel_id=personnel.id,
        start_date=args.start,
        end_date=args.end,
        availability_percentage=args.percentage,
        id=args.period_id,
    )
    decision = check_availability_overlap(personnel.availability, proposed)
    decision.raise_for_conflict()
    print(f"Accepted: {personnel.name} availability {args.percentage:g}% for {proposed.window}")


def _run_utilization(args: argparse.Namespace, snapshot: Snapshot, cfg: EngineConfig, outdir: Path) -> None:
    if args.personnel:
        personnel = snapshot.get_personnel(args.personnel)
        usage = personnel_utilization(snapshot.allocations_for(personnel.id), args.start, args.end)
        print(
            f"{personnel.name}: {usage.percentage}% utilised, "
            f"{usage.available_capacity}% capacity available "
            f"({usage.total_allocated_days} allocated days over {usage.total_days or 0} days)"
        )
        return
    members = team_utilization(
        snapshot.personnel.values(),
        snapshot.allocations,
        start=args.start,
        months=args.months or cfg.utilization_months,
        display_cap=cfg.utilization_display_cap_pct,
    )
    for member in members:
        months = ", ".join(f"{m.month} {m.utilization:g}%" for m in member.by_month)
        print(f"- {member.name}: {member.total_utilization}% ({months})")
    _write_output(team_utilization_frame(members), outdir, "team_utilization.csv", args.dry_run)


def _run_readiness(args: argparse.Namespace, snapshot: Snapshot, cfg: EngineConfig) -> None:
    project = snapshot.get_project(args.project)
    team_ids = {a.personnel_id for a in snapshot.project_allocations(project.id)}
    team = [snapshot.personnel[pid] for pid in sorted(team_ids)]
    readiness = project_readiness(
        snapshot.required_skills_for(project.id),
        team,
        nearly_ready_ratio=cfg.readiness_nearly_ready_ratio,
    )
    print(
        f"{project.name}: {readiness.status} "
        f"({readiness.covered_skills}/{readiness.total_required_skills} skills, "
        f"{readiness.readiness_percentage:g}%)"
    )
    for gap in readiness.gaps:
        holders = ", ".join(gap.allocated_skills) if gap.allocated_skills else "nobody allocated"
        print(
            f"- {gap.skill_name} (min {gap.required}): "
            f"{gap.meeting_requirement} meeting, {gap.allocated_with_skill} holding; {holders}"
        )


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    try:
        input_dir, config_path, outdir = _resolve_io_paths(args)
        cfg = load_config(config_path)
        _configure_logging(cfg.logging_level)
        snapshot = load_snapshot(input_dir)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)

    try:
        if args.command == "match":
            _run_match(args, snapshot, cfg, outdir)
        elif args.command == "availability":
            _run_availability(args, snapshot, cfg)
        elif args.command == "check-allocation":
            _run_check_allocation(args, snapshot, cfg)
        elif args.command == "check-availability":
            _run_check_availability(args, snapshot)
        elif args.command == "utilization":
            _run_utilization(args, snapshot, cfg, outdir)
        elif args.command == "readiness":
            _run_readiness(args, snapshot, cfg)
    except ConflictError as exc:
        print(f"Rejected: {exc.message}", file=sys.stderr)
        for key, value in exc.detail.items():
            print(f"  {key}: {value}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, UnknownRecordError) as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from staffing_engine.main import main


def _run(project_dir: Path, *args: str) -> None:
    main(["--project-dir", str(project_dir), *args])


def _exit_code(project_dir: Path, *args: str) -> int:
    with pytest.raises(SystemExit) as excinfo:
        _run(project_dir, *args)
    return excinfo.value.code


def test_match_writes_ranked_csv(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(snapshot_dir, "match", "--project", "web")

    out = capsys.readouterr().out
    assert "1. Alice [Senior] score 100%" in out
    assert "2. Bob [Junior] score 50%" in out

    frame = pd.read_csv(snapshot_dir / "output" / "matches_web.csv")
    assert list(frame["personnel_id"]) == ["alice", "bob"]
    assert list(frame["availability"]) == [100, 75]


def test_match_filters_and_dry_run(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(snapshot_dir, "--dry-run", "match", "--project", "web", "--min-availability", "80")

    out = capsys.readouterr().out
    assert "Alice" in out
    assert "Bob" not in out
    assert not (snapshot_dir / "output").exists()


def test_match_without_required_skills_is_an_input_error(
    snapshot_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert _exit_code(snapshot_dir, "match", "--project", "idea") == 2
    assert "no required skills" in capsys.readouterr().err


def test_availability_report_modes(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    window = ["--start", "2025-03-01", "--end", "2025-05-31"]
    _run(snapshot_dir, "availability", "--personnel", "bob", *window)
    assert "Bob: 83% available" in capsys.readouterr().out

    _run(snapshot_dir, "availability", "--personnel", "bob", *window, "--mode", "coarse")
    assert "Bob: 75% available" in capsys.readouterr().out


def test_over_allocation_is_rejected(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = _exit_code(
        snapshot_dir,
        "check-allocation",
        "--personnel", "alice",
        "--project", "data",
        "--percentage", "50",
        "--start", "2025-04-01",
        "--end", "2025-05-31",
    )
    assert code == 1
    err = capsys.readouterr().err
    assert "Rejected: Over-allocation detected" in err
    assert "total_allocation: 110" in err


def test_allocation_within_capacity_is_accepted(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(
        snapshot_dir,
        "check-allocation",
        "--personnel", "alice",
        "--project", "data",
        "--percentage", "40",
        "--start", "2025-04-01",
        "--end", "2025-05-31",
    )
    assert "Accepted: Alice at 40% on Data Platform" in capsys.readouterr().out


def test_availability_overlap_is_rejected(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = _exit_code(
        snapshot_dir,
        "check-availability",
        "--personnel", "bob",
        "--start", "2025-03-15",
        "--end", "2025-04-10",
    )
    assert code == 1
    assert "overlaps existing period 2025-03-01..2025-03-31" in capsys.readouterr().err

    _run(snapshot_dir, "check-availability", "--personnel", "bob", "--start", "2025-06-01", "--end", "2025-06-30")
    assert "Accepted" in capsys.readouterr().out


def test_unknown_personnel_is_an_input_error(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = _exit_code(
        snapshot_dir, "availability", "--personnel", "zoe", "--start", "2025-03-01", "--end", "2025-03-31"
    )
    assert code == 2
    assert "personnel 'zoe' not found" in capsys.readouterr().err


def test_missing_project_dir(tmp_path: Path) -> None:
    assert _exit_code(tmp_path / "nowhere", "readiness", "--project", "web") == 2


def test_invalid_config_is_an_input_error(snapshot_dir: Path) -> None:
    (snapshot_dir / "input" / "config.json").write_text(json.dumps({"capacity_limit_pct": 150}))
    assert _exit_code(snapshot_dir, "readiness", "--project", "web") == 2


def test_team_utilization_report(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(snapshot_dir, "utilization", "--start", "2025-03-01", "--months", "2")
    out = capsys.readouterr().out
    assert "- Alice: 60% (2025-03 60%, 2025-04 60%)" in out

    frame = pd.read_csv(snapshot_dir / "output" / "team_utilization.csv")
    assert len(frame) == 6


def test_personnel_utilization_report(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(snapshot_dir, "utilization", "--personnel", "carol", "--start", "2025-06-01", "--end", "2025-06-30")
    assert "Carol: 50% utilised, 50% capacity available" in capsys.readouterr().out


def test_readiness_report(snapshot_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(snapshot_dir, "readiness", "--project", "web")
    out = capsys.readouterr().out
    assert "Web Portal: Ready (2/2 skills, 100%)" in out
    assert "Alice (Expert)" in out

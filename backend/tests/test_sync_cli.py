"""
Tests for the sync CLI: JSON summary on success, exit codes on failure.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

# Repo root (parent of backend)
_repo_root = Path(__file__).resolve().parent.parent.parent


def _run_sync_cli(*args: str, database_url: str = "sqlite+aiosqlite:///:memory:") -> tuple[int, str, str]:
    """Run tools/sync_cli.py; return (returncode, stdout, stderr)."""
    env = {
        k: v
        for k, v in os.environ.items()
        if k not in ("TCGPLAYER_PUBLIC_KEY", "TCGPLAYER_PRIVATE_KEY")
    }
    env["DATABASE_URL"] = database_url
    result = subprocess.run(
        [sys.executable, str(_repo_root / "tools" / "sync_cli.py"), *args],
        cwd=str(_repo_root),
        capture_output=True,
        text=True,
        timeout=60,
        env=env,
    )
    return result.returncode, result.stdout or "", result.stderr or ""


def test_init_db_prints_json_summary(tmp_path: Path) -> None:
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}"
    code, out, err = _run_sync_cli("init-db", database_url=db_url)
    assert code == 0, f"stderr: {err}"
    assert json.loads(out) == {"created": True}
    assert (tmp_path / "sync.db").exists()


def test_alerts_on_initialized_db_reports_zero(tmp_path: Path) -> None:
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}"
    assert _run_sync_cli("init-db", database_url=db_url)[0] == 0

    code, out, err = _run_sync_cli("alerts", "--card-ids", "1,2", database_url=db_url)
    assert code == 0, f"stderr: {err}"
    summary = json.loads(out)
    assert summary["alerts_evaluated"] == 0
    assert summary["alerts_triggered"] == 0


def test_catalog_without_credentials_exits_2() -> None:
    code, out, err = _run_sync_cli("catalog", "--dry-run")
    assert code == 2
    assert out == ""
    assert "TCGPLAYER_PUBLIC_KEY" in err


def test_failed_sync_exits_1() -> None:
    # No schema in a fresh in-memory database.
    code, out, _ = _run_sync_cli("alerts")
    assert code == 1
    assert out == ""


def test_unknown_command_is_rejected() -> None:
    code, _, err = _run_sync_cli("bogus")
    assert code == 2
    assert "invalid choice" in err

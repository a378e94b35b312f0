from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

from app.services.schema import render_schema_sql

REPO_ROOT = Path(__file__).resolve().parents[2]
SCRIPT_PATH = REPO_ROOT / "scripts" / "bootstrap_schema.py"


def _run_script(*args: str) -> str:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT / "api"), env.get("PYTHONPATH")]))
    completed = subprocess.run(
        [sys.executable, str(SCRIPT_PATH), *args],
        check=True,
        capture_output=True,
        text=True,
        env=env,
    )
    return completed.stdout


def test_bootstrap_script_emits_catalog_schema() -> None:
    output = _run_script()

    assert "create table if not exists channels (" in output
    assert "create unique index if not exists channels_link_key on channels (link);" in output
    assert "references channels (id) on delete cascade" in output
    assert "create table if not exists admin_sessions (" in output


def test_rendered_schema_terminates_every_statement() -> None:
    sql = render_schema_sql()

    statements = [chunk for chunk in sql.split(";") if chunk.strip()]
    assert len(statements) == 7
    assert sql.startswith("create table if not exists channels (\n  id uuid primary key")

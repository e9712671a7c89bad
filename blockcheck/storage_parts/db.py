from __future__ import annotations

"""SQLite persistence for saved check runs and the saved setup.

Each saved run is one `checks` row (per-method tallies plus the raw result
rows) and one `check_domains` row per result, so a canonical domain's
verdicts can be followed across runs without decoding stored JSON.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..engine.normalize import normalize_domain

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS checks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        target TEXT NOT NULL,
        settings_json TEXT NOT NULL,
        elapsed_seconds REAL,
        result_count INTEGER NOT NULL,
        blocked_count INTEGER NOT NULL,
        dns_count INTEGER NOT NULL,
        sni_count INTEGER NOT NULL,
        official_count INTEGER NOT NULL,
        results_json TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS check_domains (
        check_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        domain TEXT NOT NULL,
        status TEXT NOT NULL,
        dns_blocked INTEGER NOT NULL,
        sni_blocked INTEGER NOT NULL,
        official_blocked INTEGER NOT NULL,
        PRIMARY KEY (check_id, position)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_check_domains_domain ON check_domains(domain, check_id DESC)",
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT,
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
)

CATALOG_COLUMNS = (
    "id, created_at, target, result_count, blocked_count, dns_count, sni_count, official_count, elapsed_seconds"
)


def _harden_user_file(path: Path) -> None:
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


def get_db_path() -> Path:
    custom = os.getenv("BLOCKCHECK_DB")
    path = Path(custom).expanduser().resolve() if custom else Path.home() / ".blockcheck" / "reports.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def init_db(db_path: Optional[Path] = None) -> Path:
    """Create the schema if needed and return the DB path."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    try:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()
    finally:
        conn.close()
    _harden_user_file(path)
    return path


@contextmanager
def _connect(db_path: Optional[Path]) -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(init_db(db_path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def tally_results(results: List[Dict[str, Any]]) -> Dict[str, int]:
    """Per-method counts stored alongside each run."""
    return {
        "result_count": len(results),
        "blocked_count": sum(1 for row in results if row.get("status") == "Blocked"),
        "dns_count": sum(1 for row in results if row.get("dns_blocked")),
        "sni_count": sum(1 for row in results if row.get("sni_blocked")),
        "official_count": sum(1 for row in results if row.get("official_blocked")),
    }


def save_check(
    target: str,
    settings: Dict[str, Any],
    results: List[Dict[str, Any]],
    elapsed: Optional[timedelta],
    db_path: Optional[Path] = None,
) -> int:
    rows = list(results or [])
    counts = tally_results(rows)
    with _connect(db_path) as conn:
        cur = conn.execute(
            """
            INSERT INTO checks (
                target, settings_json, elapsed_seconds,
                result_count, blocked_count, dns_count, sni_count, official_count, results_json
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                target,
                json.dumps(settings, ensure_ascii=False),
                elapsed.total_seconds() if elapsed else None,
                counts["result_count"],
                counts["blocked_count"],
                counts["dns_count"],
                counts["sni_count"],
                counts["official_count"],
                json.dumps(rows, ensure_ascii=False),
            ),
        )
        check_id = int(cur.lastrowid)
        conn.executemany(
            """
            INSERT INTO check_domains (check_id, position, domain, status, dns_blocked, sni_blocked, official_blocked)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    check_id,
                    position,
                    str(row.get("domain") or ""),
                    str(row.get("status") or ""),
                    int(bool(row.get("dns_blocked"))),
                    int(bool(row.get("sni_blocked"))),
                    int(bool(row.get("official_blocked"))),
                )
                for position, row in enumerate(rows)
            ],
        )
    return check_id


def list_reports(limit: int = 50, domain: Optional[str] = None, db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Newest runs first; with `domain`, only runs that checked that host."""
    with _connect(db_path) as conn:
        if domain:
            rows = conn.execute(
                f"""
                SELECT {CATALOG_COLUMNS} FROM checks
                WHERE id IN (SELECT check_id FROM check_domains WHERE domain = ?)
                ORDER BY id DESC LIMIT ?
                """,
                (normalize_domain(domain), limit),
            ).fetchall()
        else:
            rows = conn.execute(f"SELECT {CATALOG_COLUMNS} FROM checks ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]


def count_reports(db_path: Optional[Path] = None) -> int:
    with _connect(db_path) as conn:
        return int(conn.execute("SELECT COUNT(*) FROM checks").fetchone()[0])


def get_report(selector: Optional[str], db_path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """Load one run by `latest`, numeric id, exact target, or a checked domain.

    A domain (or URL) selector picks the newest run containing that host.
    """
    with _connect(db_path) as conn:
        if selector is None or selector == "latest":
            row = conn.execute("SELECT * FROM checks ORDER BY id DESC LIMIT 1").fetchone()
        elif selector.isdigit():
            row = conn.execute("SELECT * FROM checks WHERE id = ?", (int(selector),)).fetchone()
        else:
            row = conn.execute(
                "SELECT * FROM checks WHERE target = ? ORDER BY id DESC LIMIT 1", (selector,)
            ).fetchone() or conn.execute(
                """
                SELECT checks.* FROM checks JOIN check_domains ON check_domains.check_id = checks.id
                WHERE check_domains.domain = ? ORDER BY checks.id DESC LIMIT 1
                """,
                (normalize_domain(selector),),
            ).fetchone()
        data = dict(row) if row else None
    if data is None:
        return None
    data["settings"] = json.loads(data.pop("settings_json"))
    data["results"] = json.loads(data.pop("results_json"))
    return data


def domain_history(domain: str, limit: int = 20, db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Verdicts recorded for one canonical domain, newest run first."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            """
            SELECT d.check_id, c.created_at, d.domain, d.status, d.dns_blocked, d.sni_blocked, d.official_blocked
            FROM check_domains d JOIN checks c ON c.id = d.check_id
            WHERE d.domain = ?
            ORDER BY d.check_id DESC, d.position
            LIMIT ?
            """,
            (normalize_domain(domain), limit),
        ).fetchall()
        history = [dict(row) for row in rows]
    for item in history:
        for key in ("dns_blocked", "sni_blocked", "official_blocked"):
            item[key] = bool(item[key])
    return history


def delete_report(report_id: int, db_path: Optional[Path] = None) -> bool:
    with _connect(db_path) as conn:
        conn.execute("DELETE FROM check_domains WHERE check_id = ?", (report_id,))
        return conn.execute("DELETE FROM checks WHERE id = ?", (report_id,)).rowcount > 0


def reset_reports(db_path: Optional[Path] = None) -> int:
    """Delete every saved run and return how many were removed."""
    with _connect(db_path) as conn:
        conn.execute("DELETE FROM check_domains")
        return int(conn.execute("DELETE FROM checks").rowcount or 0)


def get_setting(key: str, db_path: Optional[Path] = None) -> Optional[str]:
    return get_settings(db_path=db_path).get(key)


def get_settings(prefix: Optional[str] = None, db_path: Optional[Path] = None) -> Dict[str, Optional[str]]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT key, value FROM settings WHERE key LIKE ? ORDER BY key",
            (f"{prefix or ''}%",),
        ).fetchall()
        return {str(row["key"]): (None if row["value"] is None else str(row["value"])) for row in rows}


def set_setting(key: str, value: Optional[str], db_path: Optional[Path] = None) -> None:
    with _connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=datetime('now')
            """,
            (key, value),
        )

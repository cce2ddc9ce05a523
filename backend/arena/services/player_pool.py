"""Arena player pool: bulk text import and roster export."""

from __future__ import annotations

import csv
import io
from typing import Callable, Iterable, Mapping, Optional

PoolEntry = dict
UserLookup = Callable[[str], Optional[Mapping[str, str]]]


def _normalize_username(raw: str | None) -> str | None:
    if not raw:
        return None
    value = raw.strip().lstrip("@").lower()
    return value or None


def pool_entry(
    name: str,
    username: str | None = None,
    user: Mapping[str, str] | None = None,
) -> PoolEntry:
    if user:
        return {
            "id": user["id"],
            "name": user.get("name") or name,
            "username": user.get("username"),
            "isRegistered": True,
        }
    return {
        "id": None,
        "name": name,
        "username": username,
        "isRegistered": False,
    }


def parse_player_lines(text: str) -> list[tuple[str, str | None]]:
    """Parse ``name[, @username]`` lines into ``(name, username)`` pairs.

    Blank lines and lines without a name are skipped.
    """

    pairs: list[tuple[str, str | None]] = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split(",")]
        name = parts[0]
        if not name:
            continue
        username = _normalize_username(parts[1]) if len(parts) > 1 else None
        pairs.append((name, username))
    return pairs


def is_duplicate(
    pool: Iterable[Mapping], name: str, username: str | None = None
) -> bool:
    name_key = name.strip().lower()
    username_key = _normalize_username(username)
    for entry in pool:
        if (entry.get("name") or "").strip().lower() == name_key:
            return True
        existing = _normalize_username(entry.get("username"))
        if username_key and existing and existing == username_key:
            return True
    return False


def merge_import(
    pool: Iterable[Mapping], text: str, lookup: UserLookup
) -> tuple[list[PoolEntry], int]:
    """Append parsed players to ``pool`` skipping duplicates.

    ``lookup`` resolves a username to a registered user mapping. Returns the
    new pool and the number of players added.
    """

    merged: list[PoolEntry] = [dict(entry) for entry in pool]
    added = 0
    for name, username in parse_player_lines(text):
        if is_duplicate(merged, name, username):
            continue
        user = lookup(username) if username else None
        merged.append(pool_entry(name, username, user))
        added += 1
    return merged, added


def roster_csv(pool: Iterable[Mapping]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Name", "Username", "Status"])
    for entry in pool:
        writer.writerow(
            [
                entry.get("name") or "",
                entry.get("username") or "Guest",
                "Registered" if entry.get("isRegistered") else "Manual",
            ]
        )
    return buffer.getvalue()

"""Append-only, hash-chained release ledger backed by SQLite.

Every state transition of every run and every ``PromotionRecord`` lands
here.  The ledger is for traceability: no control decision reads it.

Design:
- Append-only: only ``append()`` writes; no update, no delete.
- Hash-chained per build: each entry includes the SHA-256 of the previous
  entry of the same build.
- WAL journal mode for concurrent readers.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from canaryforge.core.hasher import compute_entry_hash
from canaryforge.models.ledger import EntryKind, LedgerEntry
from canaryforge.models.release import PromotionRecord
from canaryforge.models.runs import StateTransition

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS release_ledger (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id            TEXT NOT NULL UNIQUE,
    build_id            INTEGER NOT NULL,
    kind                TEXT NOT NULL,
    subject             TEXT NOT NULL,
    timestamp_utc       TEXT NOT NULL,
    payload_json        TEXT NOT NULL DEFAULT '{}',
    previous_entry_hash TEXT NOT NULL DEFAULT '',
    entry_hash          TEXT NOT NULL UNIQUE
);
"""

_CREATE_IDX_BUILD = """
CREATE INDEX IF NOT EXISTS idx_build_id ON release_ledger(build_id, id);
"""

_CREATE_IDX_KIND = """
CREATE INDEX IF NOT EXISTS idx_kind_subject ON release_ledger(kind, subject, id);
"""

_COLUMNS = (
    "entry_id, build_id, kind, subject, timestamp_utc, payload_json, "
    "previous_entry_hash, entry_hash"
)


class LedgerIntegrityError(RuntimeError):
    """Raised when the hash chain is broken."""


class ReleaseLedger:
    """Append-only, hash-chained release ledger.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_LEDGER)
            conn.execute(_CREATE_IDX_BUILD)
            conn.execute(_CREATE_IDX_KIND)
            conn.commit()

    # ------------------------------------------------------------------
    # Core: append-only write
    # ------------------------------------------------------------------

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Seal *entry* onto the build's chain and persist it.

        Returns the entry with ``previous_entry_hash`` and ``entry_hash`` set.
        """
        previous_hash = self._get_latest_hash(entry.build_id)
        unsealed = entry.model_copy(
            update={"previous_entry_hash": previous_hash, "entry_hash": ""}
        )
        entry_dict = unsealed.model_dump(mode="json")
        sealed = unsealed.model_copy(
            update={"entry_hash": compute_entry_hash(entry_dict)}
        )

        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO release_ledger ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    sealed.entry_id,
                    sealed.build_id,
                    sealed.kind.value,
                    sealed.subject,
                    entry_dict["timestamp_utc"],
                    json.dumps(entry_dict["payload"]),
                    sealed.previous_entry_hash,
                    sealed.entry_hash,
                ),
            )
            conn.commit()
        return sealed

    def record_transition(self, transition: StateTransition) -> LedgerEntry:
        """Append a pipeline state transition."""
        return self.append(
            LedgerEntry(
                build_id=transition.build_id,
                kind=EntryKind.TRANSITION,
                subject=f"{transition.from_state.value}->{transition.to_state.value}",
                timestamp_utc=transition.timestamp_utc,
                payload={"reason": transition.reason} if transition.reason else {},
            )
        )

    def record_promotion(self, record: PromotionRecord) -> LedgerEntry:
        """Append a completed promotion."""
        return self.append(
            LedgerEntry(
                build_id=record.build_id,
                kind=EntryKind.PROMOTION,
                subject=record.component,
                timestamp_utc=record.timestamp,
                payload=record.model_dump(mode="json"),
            )
        )

    def _get_latest_hash(self, build_id: int) -> str:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT entry_hash FROM release_ledger WHERE build_id = ? ORDER BY id DESC LIMIT 1",
                (build_id,),
            ).fetchone()
        return row[0] if row else ""

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get_build_entries(self, build_id: int) -> list[LedgerEntry]:
        """Return all ledger entries for a build, ordered chronologically."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM release_ledger WHERE build_id = ? ORDER BY id ASC",
                (build_id,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_promotions(
        self, component: str | None = None, limit: int = 50
    ) -> list[PromotionRecord]:
        """Return promotion records, newest first."""
        query = f"SELECT {_COLUMNS} FROM release_ledger WHERE kind = ?"
        params: list[object] = [EntryKind.PROMOTION.value]
        if component is not None:
            query += " AND subject = ?"
            params.append(component)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            PromotionRecord.model_validate(self._row_to_entry(row).payload)
            for row in rows
        ]

    def latest_build_id(self) -> int | None:
        """Return the highest build id the ledger has seen, or None."""
        with self._connect() as conn:
            row = conn.execute("SELECT MAX(build_id) FROM release_ledger").fetchone()
        return row[0] if row and row[0] is not None else None

    # ------------------------------------------------------------------
    # Chain verification
    # ------------------------------------------------------------------

    def verify_chain(self, build_id: int) -> bool:
        """Verify the hash chain integrity for a build.

        Returns True if the chain is valid, raises LedgerIntegrityError otherwise.
        """
        prev_hash = ""
        for entry in self.get_build_entries(build_id):
            if entry.previous_entry_hash != prev_hash:
                raise LedgerIntegrityError(
                    f"Chain broken at entry {entry.entry_id}: "
                    f"expected previous_hash={prev_hash!r}, "
                    f"got {entry.previous_entry_hash!r}"
                )
            expected_hash = compute_entry_hash(entry.model_dump(mode="json"))
            if entry.entry_hash != expected_hash:
                raise LedgerIntegrityError(
                    f"Tampered entry {entry.entry_id}: "
                    f"expected hash={expected_hash!r}, "
                    f"got {entry.entry_hash!r}"
                )
            prev_hash = entry.entry_hash
        return True

    @staticmethod
    def _row_to_entry(row: tuple) -> LedgerEntry:
        (
            entry_id,
            build_id,
            kind,
            subject,
            timestamp_utc,
            payload_json,
            previous_entry_hash,
            entry_hash,
        ) = row
        return LedgerEntry(
            entry_id=entry_id,
            build_id=build_id,
            kind=EntryKind(kind),
            subject=subject,
            timestamp_utc=timestamp_utc,
            payload=json.loads(payload_json),
            previous_entry_hash=previous_entry_hash,
            entry_hash=entry_hash,
        )

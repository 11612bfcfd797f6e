"""Release ledger entry model (append-only, hash-chained).

The release ledger is the audit trail of every run:
- Append-only (no UPDATE, no DELETE)
- Hash-chained per build (each entry links to the previous via SHA-256)
- One entry per state transition, one per promotion record
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EntryKind(str, Enum):
    TRANSITION = "transition"
    PROMOTION = "promotion"


class LedgerEntry(BaseModel):
    """A single entry in the append-only release ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    build_id: int
    kind: EntryKind
    subject: str  # "from->to" for transitions, component name for promotions
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    payload: dict[str, Any] = {}
    previous_entry_hash: str = ""  # SHA-256 of the previous entry for this build
    entry_hash: str = ""  # computed on append, seals this entry

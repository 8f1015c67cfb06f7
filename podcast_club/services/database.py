"""TinyDB database service for club data"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from tinydb import TinyDB, Query
from tinydb.storages import MemoryStorage

from podcast_club.config import settings

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value) -> Optional[datetime]:
    """Parse a stored ISO timestamp (or datetime) into an aware UTC datetime.

    Naive values are treated as UTC. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class Database:
    """Database service using TinyDB

    Writes that must not interleave (one-time code consumption, meeting
    completion) go through ``find_one_and_update`` / ``insert_unique`` which
    hold a process-wide lock around the read-check-write.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path
        self.db: Optional[TinyDB] = None
        self.lock = threading.RLock()

    def initialize(self, db_path: Optional[str] = None):
        """(Re)open the database. ``:memory:`` selects in-memory storage."""
        if db_path is not None:
            self.db_path = db_path
        if self.db_path is None:
            self.db_path = settings.database_path
        if self.db is not None:
            self.db.close()
        if self.db_path == MEMORY_PATH:
            self.db = TinyDB(storage=MemoryStorage)
        else:
            path = Path(self.db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            self.db = TinyDB(str(path))
        logger.info(f"Database connected: {self.db_path}")

    def _ensure_db(self):
        if self.db is None:
            self.initialize()

    def close(self):
        if self.db is not None:
            self.db.close()
            self.db = None

    def table(self, name: str):
        self._ensure_db()
        return self.db.table(name)

    @property
    def members(self):
        return self.table("members")

    @property
    def join_codes(self):
        return self.table("join_codes")

    @property
    def password_reset_tokens(self):
        return self.table("password_reset_tokens")

    @property
    def emergency_recovery_uses(self):
        return self.table("emergency_recovery_uses")

    @property
    def podcasts(self):
        return self.table("podcasts")

    @property
    def meetings(self):
        return self.table("meetings")

    @property
    def carve_outs(self):
        return self.table("carve_outs")

    def generate_id(self) -> str:
        return str(uuid.uuid4())

    def timestamp(self) -> str:
        return utcnow().isoformat()

    def new_document(self, **fields) -> dict:
        """Build a document with id and creation timestamps"""
        now = self.timestamp()
        return {"id": self.generate_id(), "created_at": now, "updated_at": now, **fields}

    # =========================================================================
    # Atomic helpers
    # =========================================================================

    def find_one_and_update(self, table, cond, updates: dict) -> Optional[dict]:
        """Update the first document matching ``cond`` and return it.

        The match and the write happen under one lock, so two callers racing
        on the same guard (for example ``used_at == None``) cannot both win.
        """
        with self.lock:
            doc = table.get(cond)
            if doc is None:
                return None
            updates = {**updates, "updated_at": self.timestamp()}
            table.update(updates, doc_ids=[doc.doc_id])
            return {**dict(doc), **updates}

    def insert_unique(self, table, field: str, doc: dict) -> bool:
        """Insert ``doc`` unless another document has the same ``field`` value"""
        with self.lock:
            if table.contains(Q[field] == doc[field]):
                return False
            table.insert(doc)
            return True

    def update_by_id(self, table, doc_id: str, updates: dict) -> Optional[dict]:
        return self.find_one_and_update(table, Q.id == doc_id, updates)


# Query helper
Q = Query()

# Shared instance
db = Database()

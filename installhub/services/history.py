"""
History ledger service.
Append-only, field-granular change logs with integrity hashing.

One ledger interface, three instantiations: project, crew and reclamation.
Entries are added to the caller's session and flushed, never committed here:
the caller commits the entity mutation and its entries together.
"""
import enum
import hashlib
import json
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import CrewHistory, ProjectHistory, ReclamationHistory


def serialize_value(value: Any) -> Optional[str]:
    """Render a field value the way it is stored in old_value/new_value."""
    if value is None:
        return None
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _canonical_timestamp(ts: datetime) -> str:
    # Postgres hands back aware datetimes, SQLite naive ones; hash both the same way
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts.isoformat()


def _canonical(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return _canonical_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class HistoryLedger:
    """
    Append-only ledger bound to one history model.

    Args:
        model: Mapped history class
        parent_field: Column holding the parent entity id
        kind_field: Column holding the change-type / action tag
        vocabulary: Allowed values for kind_field
    """

    _excluded = {"id", "integrity_hash"}

    def __init__(self, model, parent_field: str, kind_field: str, vocabulary: Iterable[str]):
        self.model = model
        self.parent_field = parent_field
        self.kind_field = kind_field
        self.vocabulary = frozenset(vocabulary)

    @property
    def name(self) -> str:
        return self.model.__tablename__

    def _parent_column(self):
        return getattr(self.model, self.parent_field)

    def _next_seq(self, db: Session, parent_id: uuid.UUID) -> int:
        current = (
            db.query(func.max(self.model.seq))
            .filter(self._parent_column() == parent_id)
            .scalar()
        )
        return (current or 0) + 1

    def compute_hash(self, entry, secret: Optional[str] = None) -> Optional[str]:
        if secret is None:
            secret = settings.history_integrity_secret or settings.jwt_secret
        if not secret:
            return None
        canonical_data: Dict[str, Any] = {}
        for column in self.model.__table__.columns:
            if column.key in self._excluded:
                continue
            value = getattr(entry, column.key)
            if value is None:
                continue
            canonical_data[column.key] = _canonical(value)
        canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
        hash_input = f"{canonical_json}:{secret}"
        return hashlib.sha256(hash_input.encode()).hexdigest()

    def append(self, db: Session, parent_id: uuid.UUID, **fields):
        """
        Append one entry for parent_id.

        Always succeeds or raises; the entry is flushed so that a storage
        failure surfaces inside the caller's unit of work.
        """
        kind = fields.get(self.kind_field)
        if kind not in self.vocabulary:
            raise ValueError(f"Unknown {self.kind_field} '{kind}' for {self.name}")
        entry = self.model(**fields)
        setattr(entry, self.parent_field, parent_id)
        entry.id = uuid.uuid4()
        entry.seq = self._next_seq(db, parent_id)
        entry.created_at = datetime.utcnow()
        entry.integrity_hash = self.compute_hash(entry)
        db.add(entry)
        db.flush()
        return entry

    def list_for(
        self,
        db: Session,
        parent_id: uuid.UUID,
        newest_first: bool = True,
        kinds: Optional[Iterable[str]] = None,
    ) -> List:
        """
        Entries of one parent. Newest first for display, oldest first to
        replay a timeline; insertion order breaks timestamp ties.
        """
        query = db.query(self.model).filter(self._parent_column() == parent_id)
        if kinds:
            query = query.filter(getattr(self.model, self.kind_field).in_(list(kinds)))
        if newest_first:
            query = query.order_by(self.model.created_at.desc(), self.model.seq.desc())
        else:
            query = query.order_by(self.model.created_at.asc(), self.model.seq.asc())
        return query.all()

    def verify(self, entry, secret: Optional[str] = None) -> bool:
        """True if the stored integrity hash matches the entry's content."""
        expected = self.compute_hash(entry, secret)
        return expected is not None and expected == entry.integrity_hash


PROJECT_CHANGE_TYPES = (
    "created",
    "status_change",
    "date_update",
    "equipment_update",
    "call_update",
    "info_update",
    "assignment_change",
)

CREW_CHANGE_TYPES = (
    "crew_created",
    "crew_updated",
    "crew_archived",
    "member_added",
    "member_updated",
    "member_removed",
)

RECLAMATION_ACTIONS = (
    "created",
    "accepted",
    "rejected",
    "reassigned",
    "completed",
    "cancelled",
)


project_ledger = HistoryLedger(ProjectHistory, "project_id", "change_type", PROJECT_CHANGE_TYPES)
crew_ledger = HistoryLedger(CrewHistory, "crew_id", "change_type", CREW_CHANGE_TYPES)
reclamation_ledger = HistoryLedger(ReclamationHistory, "reclamation_id", "action", RECLAMATION_ACTIONS)


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    for key in after.keys():
        before_val = before.get(key)
        after_val = after.get(key)
        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }
    return diff

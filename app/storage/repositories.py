"""SUPAWATCH — Project & Rule Repositories.

Each collection is one JSON array stored under a fixed namespace key in the
secret store. Every read-modify-write runs under a per-collection lock.

Limitation: the lock is process-local. Two processes writing the same
database still race, and the last write of the whole blob wins. The app
assumes a single logical writer.
"""

import json
import threading
from typing import Callable, Generic, List, Optional, Type, TypeVar

from pydantic import ValidationError

from app.core.errors import StorageCorruptError
from app.core.logging import get_logger
from app.models.base import CamelModel
from app.models.project_models import NotificationRule, Project
from app.storage.secret_store import SecretStore

logger = get_logger("storage.repositories")

PROJECTS_KEY = "@supa_mobile:projects"
NOTIFICATION_RULES_KEY = "@supa_mobile:notification_rules"

RecordT = TypeVar("RecordT", bound=CamelModel)


class RecordRepository(Generic[RecordT]):
    """Ordered list of records keyed by ``id``, stored as one blob."""

    namespace: str = ""
    record_type: Type[RecordT]

    def __init__(self, store: SecretStore):
        self.store = store
        self._lock = threading.RLock()

    # ── Blob I/O ──

    def _load(self) -> List[RecordT]:
        """Read the whole collection. Corrupt or missing state reads as empty."""
        try:
            raw = self.store.get(self.namespace)
            if raw is None:
                return []
            items = json.loads(raw)
            if not isinstance(items, list):
                raise StorageCorruptError(self.namespace, "not a JSON array")
            return [self.record_type.model_validate(item) for item in items]
        except (StorageCorruptError, ValueError, ValidationError) as e:
            logger.warning(
                f"Discarding unreadable {self.namespace} collection: {e}",
                extra={"namespace": self.namespace},
            )
            return []

    def _save(self, records: List[RecordT]) -> None:
        payload = [
            r.model_dump(
                mode="json",
                by_alias=True,
                exclude_none=True,
                context={"reveal_secrets": True},
            )
            for r in records
        ]
        self.store.set(self.namespace, json.dumps(payload))

    def _filtered(self, keep: Callable[[RecordT], bool]) -> int:
        """Drop records failing ``keep``; return how many were removed."""
        with self._lock:
            records = self._load()
            remaining = [r for r in records if keep(r)]
            removed = len(records) - len(remaining)
            if removed:
                self._save(remaining)
            return removed

    # ── CRUD ──

    def list(self) -> List[RecordT]:
        with self._lock:
            return self._load()

    def get(self, record_id: str) -> Optional[RecordT]:
        return next((r for r in self.list() if r.id == record_id), None)

    def upsert(self, record: RecordT) -> RecordT:
        """Replace the record with the same id in place, or append it."""
        with self._lock:
            records = self._load()
            for index, existing in enumerate(records):
                if existing.id == record.id:
                    records[index] = record
                    break
            else:
                records.append(record)
            self._save(records)
        return record

    def remove(self, record_id: str) -> None:
        """Delete by id. Unknown ids are ignored."""
        self._filtered(lambda r: r.id != record_id)


class ProjectRepository(RecordRepository[Project]):
    namespace = PROJECTS_KEY
    record_type = Project


class RuleRepository(RecordRepository[NotificationRule]):
    """Notification rules. ``project_id`` is not checked against projects."""

    namespace = NOTIFICATION_RULES_KEY
    record_type = NotificationRule

    def list(self, project_id: Optional[str] = None) -> List[NotificationRule]:
        rules = super().list()
        if project_id is not None:
            return [r for r in rules if r.project_id == project_id]
        return rules

    def set_enabled(self, rule_id: str, enabled: bool) -> None:
        """Flip one rule's ``enabled`` flag. Unknown ids are ignored."""
        with self._lock:
            rules = self._load()
            rule = next((r for r in rules if r.id == rule_id), None)
            if rule is None:
                return
            rule.enabled = enabled
            self._save(rules)

    def remove_for_project(self, project_id: str) -> int:
        """Delete every rule of a project; returns the number removed."""
        return self._filtered(lambda r: r.project_id != project_id)

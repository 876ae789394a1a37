# backend/storage.py
"""
Case and session persistence.

Both stores keep a plain JSON list and rewrite it wholesale on every
mutation. Volumes are tens of records, so lookups are linear scans.
The backend (file or memory) is injected; `create_stores` picks one from
settings.
"""

import copy
import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Tuple

from config import Settings
from errors import ConfigError
from models import ChatSession, PatientCase, utc_now_iso

logger = logging.getLogger("fysiosim_storage")

PATIENTS_FILE = "patients.json"
CHAT_SESSIONS_FILE = "chatSessions.json"


class Backend(Protocol):
    def read_all(self) -> List[dict]:
        ...

    def write_all(self, records: List[dict]) -> None:
        ...


class MemoryBackend:
    def __init__(self, records: Optional[Iterable[dict]] = None):
        self._records: List[dict] = copy.deepcopy(list(records or []))

    def read_all(self) -> List[dict]:
        return copy.deepcopy(self._records)

    def write_all(self, records: List[dict]) -> None:
        self._records = copy.deepcopy(records)


class JsonFileBackend:
    """
    JSON list on disk.

    A missing or unreadable file reads as an empty list. If a write fails
    (read-only or ephemeral filesystem) the backend keeps the data in memory
    from then on, so the service stays usable without durable storage.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fallback: Optional[MemoryBackend] = None
        if not self.path.exists():
            self.write_all([])

    @property
    def in_memory(self) -> bool:
        return self._fallback is not None

    def read_all(self) -> List[dict]:
        if self._fallback is not None:
            return self._fallback.read_all()
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s: %r", self.path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring %s: expected a JSON list, got %s", self.path, type(data).__name__)
            return []
        return data

    def write_all(self, records: List[dict]) -> None:
        if self._fallback is not None:
            self._fallback.write_all(records)
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.warning(
                "Could not write %s (%r); falling back to in-memory storage",
                self.path,
                e,
            )
            self._fallback = MemoryBackend(records)


def generate_id() -> str:
    return uuid.uuid4().hex


class CaseStore:
    def __init__(self, backend: Backend):
        self.backend = backend
        self._lock = threading.RLock()

    def _load(self) -> List[PatientCase]:
        return [PatientCase.model_validate(r) for r in self.backend.read_all()]

    def _save(self, cases: List[PatientCase]) -> None:
        self.backend.write_all([c.to_json() for c in cases])

    def list(self, praktijk: Optional[int] = None) -> List[PatientCase]:
        with self._lock:
            cases = self._load()
        if praktijk is None:
            return cases
        return [c for c in cases if c.praktijk == praktijk]

    def get(self, case_id: str) -> Optional[PatientCase]:
        with self._lock:
            for case in self._load():
                if case.id == case_id:
                    return case
        return None

    def append(self, new_cases: Iterable[PatientCase], praktijk: Optional[int] = None) -> List[PatientCase]:
        """Append cases, filling in a missing id and praktijk (default 1)."""
        prepared: List[PatientCase] = []
        for case in new_cases:
            prepared.append(
                case.model_copy(
                    update={
                        "id": case.id or generate_id(),
                        "praktijk": case.praktijk or praktijk or 1,
                    }
                )
            )

        with self._lock:
            cases = self._load()
            cases.extend(prepared)
            self._save(cases)

        logger.info("Cases appended: added=%d total=%d", len(prepared), len(cases))
        return prepared

    def set_status(self, case_id: str, status: str) -> Optional[PatientCase]:
        with self._lock:
            cases = self._load()
            for idx, case in enumerate(cases):
                if case.id == case_id:
                    updated = case.model_copy(update={"status": status, "updated_at": utc_now_iso()})
                    cases[idx] = updated
                    self._save(cases)
                    logger.info("Case status updated: case_id=%s status=%s", case_id, status)
                    return updated
        logger.warning("Status update for unknown case_id=%s", case_id)
        return None


class SessionStore:
    def __init__(self, backend: Backend):
        self.backend = backend
        self._lock = threading.RLock()

    def get(self, session_id: str) -> Optional[ChatSession]:
        with self._lock:
            records = self.backend.read_all()
        for record in records:
            if record.get("chatSessionId") == session_id:
                return ChatSession.model_validate(record)
        return None

    def upsert(self, session: ChatSession) -> ChatSession:
        record = session.to_json()
        with self._lock:
            records = self.backend.read_all()
            for idx, existing in enumerate(records):
                if existing.get("chatSessionId") == session.chat_session_id:
                    records[idx] = record
                    break
            else:
                records.append(record)
            self.backend.write_all(records)
        return session


def create_backends(settings: Settings) -> Tuple[Backend, Backend]:
    if settings.storage_backend == "memory":
        logger.info("Using in-memory storage")
        return MemoryBackend(), MemoryBackend()
    if settings.storage_backend != "file":
        raise ConfigError(f"Unknown STORAGE_BACKEND: {settings.storage_backend!r}")

    data_dir = Path(settings.data_dir)
    logger.info("Using JSON file storage in %s", data_dir)
    return JsonFileBackend(data_dir / PATIENTS_FILE), JsonFileBackend(data_dir / CHAT_SESSIONS_FILE)


def create_stores(settings: Settings) -> Tuple[CaseStore, SessionStore]:
    case_backend, session_backend = create_backends(settings)
    return CaseStore(case_backend), SessionStore(session_backend)

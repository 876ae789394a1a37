# backend/conftest.py
import json
from typing import List, Optional, Sequence

import pytest

from app import create_app
from config import Settings
from consult_service import ConsultService
from models import ChatTurn, PatientCase
from storage import CaseStore, MemoryBackend, SessionStore


class FakeCompletionClient:
    """Scripted stand-in for Gemini that records every call it receives."""

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or [])
        self.error = error
        self.calls: List[dict] = []

    def complete(self, system_instruction: Optional[str], turns: Sequence[ChatTurn]) -> str:
        self.calls.append({
            "system_instruction": system_instruction,
            "turns": [(t.role, t.text) for t in turns],
        })
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return f"Antwoord {len(self.calls)}"


def make_case(**overrides) -> PatientCase:
    fields = {
        "id": "c1",
        "praktijk": 3,
        "naam": "Jan Jansen",
        "leeftijd": 30,
        "geslacht": "Man",
        "klacht": "kniepijn",
        "domein": "Acute Knie",
        "status": "Nieuw",
    }
    fields.update(overrides)
    return PatientCase.model_validate(fields)


def draft(**overrides) -> dict:
    fields = {
        "naam": "Sanne de Vries",
        "leeftijd": 27,
        "geslacht": "Vrouw",
        "klacht": "Acute knie na val bij voetbal",
        "domein": "Acute Knie",
        "mechanisme": "Draaibeweging met vast standbeen",
        "momentVanTrauma": "3 dagen geleden",
        "hoofdklachten": ["zwelling", "instabiliteit"],
        "medischeHistorie": "",
    }
    fields.update(overrides)
    return fields


def drafts_json(count: int = 4, **overrides) -> str:
    return json.dumps([draft(naam=f"Patiënt {i}", **overrides) for i in range(count)])


@pytest.fixture
def cases() -> CaseStore:
    store = CaseStore(MemoryBackend())
    store.append([make_case()])
    return store


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore(MemoryBackend())


@pytest.fixture
def llm() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def consult(cases, sessions, llm) -> ConsultService:
    return ConsultService(cases, sessions, llm)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-key",
        cron_secret="s3cret",
        storage_backend="memory",
        seed_on_startup=False,
    )


@pytest.fixture
def generator_llm() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def client(settings, cases, sessions, llm, generator_llm):
    app = create_app(
        settings,
        cases=cases,
        sessions=sessions,
        consult_client=llm,
        generator_client=generator_llm,
    )
    app.config["TESTING"] = True
    return app.test_client()

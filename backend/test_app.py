# backend/test_app.py
import pytest

from app import create_app
from conftest import FakeCompletionClient, drafts_json, make_case
from errors import ServiceError
from storage import CaseStore, MemoryBackend, SessionStore


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.get_json()
    assert body["ok"] is True
    assert body["timestamp"]


def test_index_lists_endpoints(client):
    body = client.get("/").get_json()
    assert body["endpoints"]["vraag"] == "/api/consult/vraag"


def test_list_patients_filters_praktijk_and_status(client, cases):
    cases.append([
        make_case(id="p2", praktijk=2),
        make_case(id="p2-done", praktijk=2, status="Afgerond"),
        make_case(id="p2-busy", praktijk=2, status="InBehandeling"),
    ])

    body = client.get("/api/patienten?praktijk=2").get_json()
    assert [p["id"] for p in body["patienten"]] == ["p2", "p2-busy"]
    assert body["totaal"] == 2
    assert body["praktijk"] == 2

    body = client.get("/api/patienten").get_json()
    assert [p["id"] for p in body["patienten"]] == ["c1", "p2", "p2-busy"]
    assert body["praktijk"] == "alle"


def test_list_patients_rejects_bad_praktijk(client):
    r = client.get("/api/patienten?praktijk=abc")
    assert r.status_code == 400
    assert "details" in r.get_json()


def test_get_patient(client):
    r = client.get("/api/patienten/c1")
    assert r.status_code == 200
    assert r.get_json()["patient"]["naam"] == "Jan Jansen"

    r = client.get("/api/patienten/nope")
    assert r.status_code == 404
    assert r.get_json()["error"] == "Patiënt niet gevonden"


def test_consult_flow(client, cases):
    r = client.post("/api/consult/start", json={"patientId": "c1", "studentId": "s1", "praktijk": 3})
    assert r.status_code == 200
    body = r.get_json()
    sid = body["chatSessionId"]
    assert body["firstMessage"] == "Antwoord 1"
    assert body["patient"]["status"] == "InBehandeling"
    assert cases.get("c1").status == "InBehandeling"

    expected = [("/hint", 1, 9), ("/hint", 2, 8), ("wat is de Ottawa rule?", 2, 8)]
    for vraag, hints, score in expected:
        r = client.post("/api/consult/vraag", json={"chatSessionId": sid, "vraag": vraag})
        assert r.status_code == 200
        body = r.get_json()
        assert body["response"]
        assert body["session"] == {
            "chatSessionId": sid,
            "currentStep": 1,
            "score": score,
            "hintCount": hints,
        }

    r = client.get(f"/api/consult/{sid}")
    assert r.status_code == 200
    session = r.get_json()["session"]
    assert len(session["messages"]) == 8
    assert session["studentId"] == "s1"
    assert session["messages"][-1]["role"] == "assistant"


def test_start_consult_requires_patient_id(client, llm):
    r = client.post("/api/consult/start", json={})
    assert r.status_code == 400
    assert r.get_json()["error"] == "patientId is verplicht"
    assert llm.calls == []


def test_start_consult_unknown_patient(client, llm):
    r = client.post("/api/consult/start", json={"patientId": "nope"})
    assert r.status_code == 404
    assert llm.calls == []


def test_start_consult_wrong_praktijk(client, cases, llm):
    r = client.post("/api/consult/start", json={"patientId": "c1", "praktijk": 5})
    assert r.status_code == 403
    assert llm.calls == []
    assert cases.get("c1").status == "Nieuw"


def test_start_consult_defaults_to_anonymous_student(client):
    sid = client.post("/api/consult/start", json={"patientId": "c1"}).get_json()["chatSessionId"]
    session = client.get(f"/api/consult/{sid}").get_json()["session"]
    assert session["studentId"] == "anoniem"
    assert session["praktijk"] == 3


@pytest.mark.parametrize(
    "payload",
    [{}, {"chatSessionId": "x"}, {"vraag": "hallo"}, {"chatSessionId": "x", "vraag": ""}],
)
def test_question_requires_both_fields(client, payload):
    r = client.post("/api/consult/vraag", json=payload)
    assert r.status_code == 400
    assert r.get_json()["error"] == "chatSessionId en vraag zijn verplicht"


def test_question_unknown_session(client, llm):
    r = client.post("/api/consult/vraag", json={"chatSessionId": "nope", "vraag": "hoi"})
    assert r.status_code == 404
    assert llm.calls == []


def test_get_unknown_session(client):
    r = client.get("/api/consult/nope")
    assert r.status_code == 404
    assert r.get_json()["error"] == "Chat sessie niet gevonden"


def test_upstream_failure_is_reported_with_details(client, llm):
    llm.error = ServiceError("model overloaded", upstream_status=503)
    r = client.post("/api/consult/start", json={"patientId": "c1"})

    assert r.status_code == 502
    body = r.get_json()
    assert body["error"] == "Gemini API error"
    assert "503" in body["details"]


def test_missing_api_key_is_reported(settings, cases, sessions):
    settings = settings.model_copy(update={"gemini_api_key": None})
    app = create_app(settings, cases=cases, sessions=sessions)
    r = app.test_client().post("/api/consult/start", json={"patientId": "c1"})

    assert r.status_code == 500
    assert "GEMINI_API_KEY" in r.get_json()["details"]


def test_malformed_body_is_bad_request(client):
    r = client.post("/api/consult/start", json={"patientId": "c1", "praktijk": "drie"})
    assert r.status_code == 400


def test_unknown_route_keeps_http_status(client):
    assert client.get("/api/bestaat-niet").status_code == 404


def test_cron_requires_secret(client, generator_llm):
    r = client.post("/cron/generate-wachtkamer", json={})
    assert r.status_code == 401
    r = client.post("/cron/generate-wachtkamer", json={"secret": "wrong"})
    assert r.status_code == 401
    assert generator_llm.calls == []


def test_cron_generates_for_one_praktijk(client, cases, generator_llm):
    generator_llm.replies = [drafts_json(4)]
    r = client.post(
        "/cron/generate-wachtkamer",
        json={"praktijk": 4, "domeinen": ["Schouder"]},
        headers={"X-Cron-Secret": "s3cret"},
    )

    assert r.status_code == 200
    body = r.get_json()
    assert body["praktijk"] == 4
    assert len(body["patienten"]) == 4
    assert all(p["praktijk"] == 4 and p["id"] for p in body["patienten"])
    assert len(cases.list(4)) == 4
    assert "Schouder" in generator_llm.calls[0]["turns"][0][1]


def test_cron_generates_for_all_praktijken(client, cases, generator_llm):
    generator_llm.replies = [drafts_json(4) for _ in range(6)]
    r = client.post("/cron/generate-wachtkamer", json={"secret": "s3cret"})

    assert r.status_code == 200
    body = r.get_json()
    assert body["praktijk"] == "alle"
    assert len(body["patienten"]) == 24
    for praktijk in range(1, 7):
        generated = [c for c in cases.list(praktijk) if c.id != "c1"]
        assert len(generated) == 4


def test_cron_generation_failure(client, generator_llm):
    generator_llm.replies = [drafts_json(2)]
    r = client.post("/cron/generate-wachtkamer", json={"secret": "s3cret", "praktijk": 1})
    assert r.status_code == 502
    assert "Minder dan 4" in r.get_json()["details"]


def test_test_endpoints(client, cases, generator_llm):
    r = client.post("/api/patienten/test", json={"praktijk": 2})
    assert r.status_code == 200
    body = r.get_json()
    assert body["patient"]["praktijk"] == 2
    assert body["totalPatients"] == 1

    generator_llm.replies = [drafts_json(4)]
    r = client.post("/api/patienten/generate", json={"praktijk": 2, "aantal": 2})
    assert r.status_code == 200
    body = r.get_json()
    assert len(body["patienten"]) == 2
    assert body["totalPatients"] == 3


def test_test_endpoints_can_be_disabled(settings, cases, sessions):
    settings = settings.model_copy(update={"enable_test_endpoints": False})
    app = create_app(settings, cases=cases, sessions=sessions, consult_client=FakeCompletionClient())
    assert app.test_client().post("/api/patienten/test", json={}).status_code == 404


def test_seed_on_startup_fills_empty_store(settings):
    settings = settings.model_copy(update={"seed_on_startup": True})
    cases = CaseStore(MemoryBackend())
    generator = FakeCompletionClient(replies=[drafts_json(4) for _ in range(6)])

    create_app(
        settings,
        cases=cases,
        sessions=SessionStore(MemoryBackend()),
        consult_client=FakeCompletionClient(),
        generator_client=generator,
    )
    assert len(cases.list()) == 24


def test_seed_on_startup_failure_is_not_fatal(settings):
    settings = settings.model_copy(update={"seed_on_startup": True})
    cases = CaseStore(MemoryBackend())
    generator = FakeCompletionClient(error=ServiceError("down", upstream_status=503))

    create_app(
        settings,
        cases=cases,
        sessions=SessionStore(MemoryBackend()),
        consult_client=FakeCompletionClient(),
        generator_client=generator,
    )
    assert cases.list() == []


def test_seed_skipped_when_store_has_patients(settings, cases):
    settings = settings.model_copy(update={"seed_on_startup": True})
    generator = FakeCompletionClient()
    create_app(
        settings,
        cases=cases,
        sessions=SessionStore(MemoryBackend()),
        consult_client=FakeCompletionClient(),
        generator_client=generator,
    )
    assert generator.calls == []

# backend/app.py
import logging
from typing import List, Optional, Sequence

from flask import Flask, request, jsonify
from flask_cors import CORS
from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from config import Settings, load_settings
from consult_service import ConsultService
from errors import FysiosimError, NotFound, Unauthorized, ValidationError
from graph import CompletionClient
from llm_client import GeminiCompletionClient
from models import (
    ACTIVE_STATUSES,
    ANONYMOUS_STUDENT,
    STATUS_IN_PROGRESS,
    GenerateRequest,
    PatientCase,
    QuestionRequest,
    QuestionResponse,
    StartConsultRequest,
    StartConsultResponse,
    utc_now_iso,
)
from patient_generator import DEFAULT_DOMEINEN, generate_wachtkamer, sample_patient
from storage import CaseStore, SessionStore, create_stores

# --------- LOGGING SETUP (MINIMAL, NON-SENSITIVE) ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("fysiosim_backend")

API_VERSION = "1.0.0"
PRAKTIJKEN = range(1, 7)


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _praktijk_query() -> Optional[int]:
    raw = request.args.get("praktijk")
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"praktijk moet een getal zijn, niet {raw!r}")


def generate_and_store(
    cases: CaseStore,
    client: CompletionClient,
    domeinen: Sequence[str],
    praktijken: Sequence[int],
    aantal: Optional[int] = None,
) -> List[PatientCase]:
    """Generate one waiting room per praktijk and append each batch as it arrives."""
    stored: List[PatientCase] = []
    for praktijk in praktijken:
        batch = generate_wachtkamer(client, domeinen)
        if aantal is not None:
            batch = batch[:aantal]
        stored.extend(cases.append(batch, praktijk=praktijk))
        logger.info("Waiting room stored: praktijk=%d count=%d", praktijk, len(batch))
    return stored


def seed_if_empty(cases: CaseStore, client: CompletionClient) -> None:
    existing = cases.list()
    if existing:
        logger.info("Startup seeding skipped: database already holds %d patients", len(existing))
        return

    logger.info("Database empty; generating waiting rooms for all praktijken")
    try:
        generate_and_store(cases, client, DEFAULT_DOMEINEN, PRAKTIJKEN)
    except FysiosimError as e:
        logger.error("Startup seeding failed: %s", e.message)
        return
    logger.info("Startup seeding complete")


def create_app(
    settings: Optional[Settings] = None,
    cases: Optional[CaseStore] = None,
    sessions: Optional[SessionStore] = None,
    consult_client: Optional[CompletionClient] = None,
    generator_client: Optional[CompletionClient] = None,
) -> Flask:
    settings = settings or load_settings()

    if cases is None or sessions is None:
        default_cases, default_sessions = create_stores(settings)
        cases = cases if cases is not None else default_cases
        sessions = sessions if sessions is not None else default_sessions

    if consult_client is None:
        consult_client = GeminiCompletionClient(
            settings.gemini_api_key, settings.chat_model, settings.temperature
        )
    if generator_client is None:
        generator_client = GeminiCompletionClient(
            settings.gemini_api_key, settings.generator_model, settings.temperature
        )

    consult = ConsultService(cases, sessions, consult_client)

    app = Flask(__name__)
    cors_origins = "*" if "*" in settings.cors_origins else settings.cors_origins
    CORS(
        app,
        origins=cors_origins,
        methods=["GET", "POST", "OPTIONS", "PUT"],
        supports_credentials=True,
    )

    # --- ERRORS ---

    @app.errorhandler(FysiosimError)
    def handle_app_error(e: FysiosimError):
        logger.warning("Request failed: %s %s -> %d %s", request.method, request.path, e.status_code, e.message)
        return jsonify({"error": e.error, "details": e.message}), e.status_code

    @app.errorhandler(PydanticValidationError)
    def handle_bad_payload(e: PydanticValidationError):
        logger.warning("Invalid request body: %s %s (%d errors)", request.method, request.path, e.error_count())
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return jsonify({"error": ValidationError.error, "details": details}), 400

    @app.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.name, "details": e.description}), e.code
        logger.exception("Unhandled exception occurred: %s", repr(e))
        return jsonify({"error": "Server error", "details": str(e)}), 500

    # --- ROUTES ---

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "message": "Fysiosim Backend API",
            "version": API_VERSION,
            "endpoints": {
                "health": "/health",
                "patienten": "/api/patienten",
                "consult": "/api/consult/start",
                "vraag": "/api/consult/vraag",
                "generateWachtkamer": "/cron/generate-wachtkamer",
            },
            "timestamp": utc_now_iso(),
        })

    @app.route("/health", methods=["GET"])
    def health():
        logger.debug("Health check ping")
        return jsonify({"ok": True, "timestamp": utc_now_iso()})

    @app.route("/api/patienten", methods=["GET"])
    def list_patients():
        praktijk = _praktijk_query()
        active = [c for c in cases.list(praktijk) if c.status in ACTIVE_STATUSES]
        logger.info(
            "Patients requested: praktijk=%s active=%d",
            praktijk if praktijk is not None else "alle",
            len(active),
        )
        return jsonify({
            "patienten": [c.to_json() for c in active],
            "totaal": len(active),
            "praktijk": praktijk if praktijk is not None else "alle",
        })

    @app.route("/api/patienten/<patient_id>", methods=["GET"])
    def get_patient(patient_id: str):
        patient = cases.get(patient_id)
        if patient is None:
            raise NotFound("Patiënt niet gevonden", error="Patiënt niet gevonden")
        return jsonify({"patient": patient.to_json()})

    @app.route("/cron/generate-wachtkamer", methods=["POST"])
    def cron_generate_wachtkamer():
        data = _json_body()
        secret = request.headers.get("X-Cron-Secret") or data.get("secret")
        if secret != settings.cron_secret:
            logger.warning("Cron call rejected: invalid secret")
            raise Unauthorized("Unauthorized: Invalid secret key", error="Unauthorized: Invalid secret key")

        req = GenerateRequest(**data)
        domeinen = req.domeinen or DEFAULT_DOMEINEN

        if req.praktijk:
            stored = generate_and_store(cases, generator_client, domeinen, [req.praktijk])
            return jsonify({
                "success": True,
                "message": f"{len(stored)} patiënten gegenereerd voor praktijk {req.praktijk}",
                "patienten": [c.to_json() for c in stored],
                "praktijk": req.praktijk,
                "timestamp": utc_now_iso(),
            })

        stored = generate_and_store(cases, generator_client, domeinen, PRAKTIJKEN)
        return jsonify({
            "success": True,
            "message": f"{len(stored)} patiënten gegenereerd voor alle praktijken",
            "patienten": [c.to_json() for c in stored],
            "praktijk": "alle",
            "timestamp": utc_now_iso(),
        })

    @app.route("/api/consult/start", methods=["POST"])
    def start_consult():
        req = StartConsultRequest(**_json_body())
        if not req.patientId:
            raise ValidationError("patientId is verplicht", error="patientId is verplicht")

        session = consult.start_consult(
            req.patientId,
            student_id=req.studentId or ANONYMOUS_STUDENT,
            praktijk=req.praktijk,
        )
        patient = cases.set_status(req.patientId, STATUS_IN_PROGRESS)

        resp = StartConsultResponse(
            chatSessionId=session.chat_session_id,
            firstMessage=session.messages[-1].text,
            patient=patient.to_json() if patient else None,
        )
        return jsonify(resp.model_dump())

    @app.route("/api/consult/vraag", methods=["POST"])
    def ask_question():
        req = QuestionRequest(**_json_body())
        if not req.chatSessionId or not req.vraag:
            raise ValidationError(
                "chatSessionId en vraag zijn verplicht",
                error="chatSessionId en vraag zijn verplicht",
            )

        reply, session = consult.send_question(req.chatSessionId, req.vraag)
        resp = QuestionResponse(response=reply, session=session.summary())
        return jsonify(resp.model_dump())

    @app.route("/api/consult/<chat_session_id>", methods=["GET"])
    def get_consult(chat_session_id: str):
        session = consult.get_session(chat_session_id)
        return jsonify({"session": session.to_json()})

    if settings.enable_test_endpoints:

        @app.route("/api/patienten/test", methods=["POST"])
        def add_test_patient():
            praktijk = GenerateRequest(**_json_body()).praktijk or 1
            stored = cases.append([sample_patient(praktijk)], praktijk=praktijk)
            total = len(cases.list(praktijk))
            logger.info("Test patient added: praktijk=%d total=%d", praktijk, total)
            return jsonify({
                "success": True,
                "message": "Test patiënt toegevoegd",
                "patient": stored[0].to_json(),
                "totalPatients": total,
            })

        @app.route("/api/patienten/generate", methods=["POST"])
        def generate_patients():
            req = GenerateRequest(**_json_body())
            praktijk = req.praktijk or 1
            domeinen = req.domeinen or DEFAULT_DOMEINEN

            logger.info("Generating %d patients for praktijk %d", req.aantal, praktijk)
            stored = generate_and_store(cases, generator_client, domeinen, [praktijk], aantal=req.aantal)
            total = len(cases.list(praktijk))
            return jsonify({
                "success": True,
                "message": f"{len(stored)} patiënten gegenereerd voor praktijk {praktijk}",
                "patienten": [c.to_json() for c in stored],
                "praktijk": praktijk,
                "totalPatients": total,
                "timestamp": utc_now_iso(),
            })

    logger.info(
        "App created: storage=%s gemini_key=%s cron_secret=%s test_endpoints=%s",
        settings.storage_backend,
        "set" if settings.gemini_api_key else "MISSING",
        "default" if settings.uses_default_cron_secret else "set",
        settings.enable_test_endpoints,
    )
    if settings.uses_default_cron_secret:
        logger.warning("CRON_SECRET_KEY not set; using the default secret")

    if settings.seed_on_startup:
        seed_if_empty(cases, generator_client)

    return app


if __name__ == "__main__":
    settings = load_settings()
    app = create_app(settings)
    logger.info("Starting Fysiosim backend on port %d", settings.port)
    app.run(host="0.0.0.0", port=settings.port)

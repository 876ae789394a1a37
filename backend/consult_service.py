# backend/consult_service.py
"""
Consult session lifecycle.

A session is created with a fixed system instruction and one exchange
(start trigger + first tutor message). Every question appends exactly one
user turn and one assistant turn. The only local scoring rule is the
literal `/hint` command: each one costs a point, and the score is always
recomputed as `max(0, 10 - hintCount)`.

`currentStep` stays at 1. Step tracking is left to the tutor's own
narrative; the manager never inspects the model's text.
"""

import logging
import threading
import time
import uuid
import weakref
from typing import Callable, Optional, Tuple

from errors import Forbidden, NotFound
from graph import CompletionClient, build_consult_graph
from models import (
    ANONYMOUS_STUDENT,
    MAX_SCORE,
    ChatSession,
    ChatTurn,
    PatientCase,
    utc_now_iso,
)
from prompts import START_PROMPT, SYSTEM_PROMPT_VERSION, build_system_prompt
from storage import CaseStore, SessionStore

logger = logging.getLogger("fysiosim_consult")

HINT_COMMAND = "/hint"

PromptBuilder = Callable[[dict], str]


def is_hint_command(text: str) -> bool:
    return (text or "").strip().lower() == HINT_COMMAND


def compute_score(hint_count: int) -> int:
    return max(0, MAX_SCORE - hint_count)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ConsultService:
    def __init__(
        self,
        cases: CaseStore,
        sessions: SessionStore,
        client: CompletionClient,
        prompt_builder: PromptBuilder = build_system_prompt,
        start_prompt: str = START_PROMPT,
        prompt_version: Optional[str] = SYSTEM_PROMPT_VERSION,
    ):
        self.cases = cases
        self.sessions = sessions
        self.prompt_builder = prompt_builder
        self.start_prompt = start_prompt
        self.prompt_version = prompt_version
        self._graph = build_consult_graph(client)

        # One lock per live session id: a question holds it across
        # read -> completion call -> write. Entries vanish once no
        # question holds them.
        self._session_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._session_locks[session_id] = lock
            return lock

    def _next_reply(self, system_instruction: str, turns) -> str:
        result = self._graph.invoke({"system_instruction": system_instruction, "turns": list(turns)})
        return result["reply"]

    def _resolve_case(self, patient_id: str, praktijk: Optional[int]) -> PatientCase:
        case = self.cases.get(patient_id)
        if case is None:
            logger.warning("Consult start for unknown patient_id=%s", patient_id)
            raise NotFound("Patiënt niet gevonden", error="Patiënt niet gevonden")

        if praktijk and case.praktijk and case.praktijk != praktijk:
            logger.warning(
                "Consult start with praktijk mismatch: patient_id=%s case_praktijk=%s requested=%s",
                patient_id,
                case.praktijk,
                praktijk,
            )
            raise Forbidden(
                "Patiënt hoort niet bij deze praktijk",
                error="Patiënt hoort niet bij deze praktijk",
            )
        return case

    def start_consult(
        self,
        patient_id: str,
        student_id: Optional[str] = ANONYMOUS_STUDENT,
        praktijk: Optional[int] = None,
    ) -> ChatSession:
        case = self._resolve_case(patient_id, praktijk)

        system_instruction = self.prompt_builder(case.to_json())
        session_id = new_session_id()
        trigger = ChatTurn(role="user", text=self.start_prompt)

        try:
            first_message = self._next_reply(system_instruction, [trigger])
        except Exception:
            logger.exception("Failed to start consult: patient_id=%s", patient_id)
            raise

        now = utc_now_iso()
        session = ChatSession(
            chatSessionId=session_id,
            patientId=patient_id,
            studentId=student_id or ANONYMOUS_STUDENT,
            praktijk=praktijk or case.praktijk or 1,
            systemInstruction=system_instruction,
            promptVersion=self.prompt_version,
            messages=[trigger, ChatTurn(role="assistant", text=first_message)],
            currentStep=1,
            score=MAX_SCORE,
            hintCount=0,
            createdAt=now,
            updatedAt=now,
        )
        self.sessions.upsert(session)

        logger.info(
            "Consult started: session_id=%s patient_id=%s praktijk=%d",
            session_id,
            patient_id,
            session.praktijk,
        )
        return session

    def send_question(self, session_id: str, question: str) -> Tuple[str, ChatSession]:
        # Unknown ids fail here without creating a lock.
        self.get_session(session_id)

        lock = self._lock_for(session_id)
        with lock:
            session = self.get_session(session_id)

            turns = list(session.messages)
            turns.append(ChatTurn(role="user", text=question))

            try:
                reply = self._next_reply(session.system_instruction, turns)
            except Exception:
                logger.exception("Failed to answer question: session_id=%s", session_id)
                raise

            hint_count = session.hint_count
            if is_hint_command(question):
                hint_count += 1

            turns.append(ChatTurn(role="assistant", text=reply))
            updated = session.model_copy(
                update={
                    "messages": turns,
                    "hint_count": hint_count,
                    "score": compute_score(hint_count),
                    "updated_at": utc_now_iso(),
                }
            )
            self.sessions.upsert(updated)

        logger.info(
            "Question answered: session_id=%s turns=%d hint_count=%d score=%d",
            session_id,
            len(updated.messages),
            updated.hint_count,
            updated.score,
        )
        return reply, updated

    def get_session(self, session_id: str) -> ChatSession:
        session = self.sessions.get(session_id)
        if session is None:
            logger.warning("Unknown chat session_id=%s", session_id)
            raise NotFound("Chat sessie niet gevonden", error="Chat sessie niet gevonden")
        return session

# backend/models.py
from datetime import datetime, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

STATUS_NEW = "Nieuw"
STATUS_IN_PROGRESS = "InBehandeling"
STATUS_DONE = "Afgerond"
ACTIVE_STATUSES = (STATUS_NEW, STATUS_IN_PROGRESS)

CaseStatus = Literal["Nieuw", "InBehandeling", "Afgerond"]
Sex = Literal["Man", "Vrouw", "Anders"]

MAX_SCORE = 10
ANONYMOUS_STUDENT = "anoniem"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PatientCase(BaseModel):
    # Stored JSON keeps the Dutch camelCase field names the frontend reads.
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    praktijk: Optional[int] = None
    naam: str
    leeftijd: Union[int, float]
    geslacht: Sex
    klacht: str
    domein: str
    mechanisme: str = ""
    moment_van_trauma: str = Field("", alias="momentVanTrauma")
    hoofdklachten: Union[List[str], str] = []
    medische_historie: Optional[str] = Field("", alias="medischeHistorie")
    status: CaseStatus = STATUS_NEW
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    updated_at: str = Field(default_factory=utc_now_iso, alias="updatedAt")

    @field_validator("naam", "klacht", "mechanisme", "moment_van_trauma", "medische_historie", mode="before")
    @classmethod
    def _free_text(cls, value):
        # Generated drafts send null or numbers for free-text fields.
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("hoofdklachten", mode="before")
    @classmethod
    def _complaints(cls, value):
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [v if isinstance(v, str) else str(v) for v in value if v is not None]
        return value if isinstance(value, str) else str(value)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str
    timestamp: str = Field(default_factory=utc_now_iso)

    @field_validator("role", mode="before")
    @classmethod
    def _legacy_model_role(cls, value):
        # Older session files stored Gemini's own "model" role.
        return "assistant" if value == "model" else value


class ChatSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_session_id: str = Field(alias="chatSessionId")
    patient_id: str = Field(alias="patientId")
    student_id: str = Field(ANONYMOUS_STUDENT, alias="studentId")
    praktijk: int = 1
    system_instruction: str = Field(alias="systemInstruction")
    prompt_version: Optional[str] = Field(None, alias="promptVersion")
    messages: List[ChatTurn] = []
    current_step: int = Field(1, alias="currentStep")
    score: int = MAX_SCORE
    hint_count: int = Field(0, alias="hintCount")
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    updated_at: str = Field(default_factory=utc_now_iso, alias="updatedAt")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)

    def summary(self) -> "SessionSummary":
        return SessionSummary(
            chatSessionId=self.chat_session_id,
            currentStep=self.current_step,
            score=self.score,
            hintCount=self.hint_count,
        )


# --- HTTP request / response shapes ---

class StartConsultRequest(BaseModel):
    patientId: Optional[str] = None
    studentId: Optional[str] = None
    praktijk: Optional[int] = None


class StartConsultResponse(BaseModel):
    chatSessionId: str
    firstMessage: str
    patient: Optional[dict] = None


class QuestionRequest(BaseModel):
    chatSessionId: Optional[str] = None
    vraag: Optional[str] = None


class SessionSummary(BaseModel):
    chatSessionId: str
    currentStep: int
    score: int
    hintCount: int


class QuestionResponse(BaseModel):
    response: str
    session: SessionSummary


class GenerateRequest(BaseModel):
    domeinen: Optional[List[str]] = None
    praktijk: Optional[int] = None
    secret: Optional[str] = None
    aantal: int = 4

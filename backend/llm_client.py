# backend/llm_client.py
import logging
from typing import Any, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from errors import ConfigError, EmptyResponseError, ServiceError
from models import ChatTurn

logger = logging.getLogger("fysiosim_llm")


def _to_messages(system_instruction: Optional[str], turns: Sequence[ChatTurn]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    if system_instruction:
        messages.append(SystemMessage(content=system_instruction))
    for turn in turns:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.text))
        else:
            messages.append(AIMessage(content=turn.text))
    return messages


def _response_text(resp: Any) -> str:
    content = getattr(resp, "content", resp)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(part.get("text") or "")
        return "".join(parts)
    return ""


def _upstream_status(exc: Exception) -> Optional[int]:
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


class GeminiCompletionClient:
    """
    Sends a system instruction plus an ordered transcript to Gemini and
    returns the single next assistant text.

    The chat model is built on first use, so a missing API key only fails
    the request that needs it, not the process. One attempt per call: a
    failed or empty answer goes straight back to the caller.
    """

    def __init__(self, api_key: Optional[str], model: str, temperature: float = 0.7):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._llm: Optional[ChatGoogleGenerativeAI] = None

    def _get_llm(self) -> ChatGoogleGenerativeAI:
        if not self.api_key:
            raise ConfigError("GEMINI_API_KEY is niet ingesteld in omgevingsvariabelen")
        if self._llm is None:
            self._llm = ChatGoogleGenerativeAI(
                model=self.model,
                google_api_key=self.api_key,
                temperature=self.temperature,
                max_tokens=None,
                max_retries=0,
            )
            logger.info("Gemini chat model initialised: model=%s", self.model)
        return self._llm

    def complete(self, system_instruction: Optional[str], turns: Sequence[ChatTurn]) -> str:
        llm = self._get_llm()
        messages = _to_messages(system_instruction, turns)

        try:
            resp = llm.invoke(messages)
        except Exception as e:
            # Log the failure but never the transcript itself.
            status = _upstream_status(e)
            logger.error(
                "Gemini call failed: model=%s turns=%d status=%s error=%r",
                self.model,
                len(turns),
                status,
                e,
            )
            raise ServiceError(str(e), upstream_status=status) from e

        text = _response_text(resp)
        if not text.strip():
            logger.warning("Empty Gemini response: model=%s turns=%d", self.model, len(turns))
            raise EmptyResponseError("Geen antwoord ontvangen van Gemini API")

        logger.debug("Gemini response received: model=%s length=%d", self.model, len(text))
        return text

# backend/patient_generator.py

import json
import logging
import time
from typing import Any, List, Optional, Sequence

from errors import GenerationError
from graph import CompletionClient
from models import ChatTurn, PatientCase, STATUS_NEW, utc_now_iso
from patient_schema import validate_patient_data
from prompts import build_generation_prompt

logger = logging.getLogger("fysiosim_generator")

DEFAULT_DOMEINEN = ["Acute Knie", "Schouder", "Lage Rug"]
CASES_PER_BATCH = 4

# Set by the server, never taken from a generated draft.
SERVER_FIELDS = ("id", "praktijk", "status", "createdAt", "updatedAt", "created_at", "updated_at")


def _cleanup_json(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        s = s[3:]
        if s.lower().startswith("json"):
            s = s[4:]
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


def parse_drafts(text: str) -> List[Any]:
    try:
        data = json.loads(_cleanup_json(text))
    except ValueError as e:
        logger.error("Generated waiting room is not valid JSON; length=%d", len(text))
        raise GenerationError(f"Antwoord van Gemini is geen geldige JSON: {e}") from e
    if not isinstance(data, list):
        raise GenerationError("Antwoord van Gemini is geen JSON-array")
    return data


def _to_case(draft: dict) -> PatientCase:
    now = utc_now_iso()
    fields = {k: v for k, v in draft.items() if k not in SERVER_FIELDS}
    fields.update({"status": STATUS_NEW, "createdAt": now, "updatedAt": now})
    return PatientCase.model_validate(fields)


def generate_wachtkamer(
    client: CompletionClient,
    domeinen: Optional[Sequence[str]] = None,
) -> List[PatientCase]:
    """
    Ask Gemini for a batch of patient drafts and keep exactly four valid ones.

    Drafts failing the schema are dropped with a warning. Fewer than four
    survivors is a GenerationError; extra ones are cut off.
    """
    domeinen = list(domeinen or DEFAULT_DOMEINEN)
    prompt = build_generation_prompt(domeinen)

    logger.info("Generating waiting room: domeinen=%s", domeinen)
    text = client.complete(None, [ChatTurn(role="user", text=prompt)])
    drafts = parse_drafts(text)

    valid: List[PatientCase] = []
    for draft in drafts:
        result = validate_patient_data(draft)
        if not result.valid:
            logger.warning("Invalid generated patient dropped: %s", "; ".join(result.errors))
            continue
        valid.append(_to_case(draft))

    if len(valid) < CASES_PER_BATCH:
        logger.error(
            "Too few valid patients generated: valid=%d drafts=%d",
            len(valid),
            len(drafts),
        )
        raise GenerationError(f"Minder dan {CASES_PER_BATCH} geldige patiënten gegenereerd: {len(valid)}")

    logger.info("Waiting room generated: valid=%d drafts=%d", len(valid), len(drafts))
    return valid[:CASES_PER_BATCH]


def sample_patient(praktijk: int = 1) -> PatientCase:
    """Fixed acute-knee patient for manual testing of a practice's waiting room."""
    return PatientCase(
        id=f"test_{int(time.time() * 1000)}",
        praktijk=praktijk,
        naam="Test Patiënt",
        leeftijd=45,
        geslacht="Man",
        klacht="Acute kniepijn na val tijdens hardlopen",
        domein="Acute Knie",
        mechanisme="Tijdens hardlopen in het park uitgegleden op nat gras, direct pijn in rechter knie",
        momentVanTrauma="2 dagen geleden",
        hoofdklachten=[
            "Pijn in rechter knie bij belasting",
            "Beperkte buiging en strekking",
            "Zwelling rondom de knie",
        ],
        medischeHistorie="Geen relevante medische voorgeschiedenis",
        status=STATUS_NEW,
    )

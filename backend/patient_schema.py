# backend/patient_schema.py
from typing import Any, List

from pydantic import BaseModel

REQUIRED_FIELDS = ("naam", "leeftijd", "geslacht", "klacht", "domein")
ALLOWED_SEXES = ("Man", "Vrouw", "Anders")


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = []


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_patient_data(data: Any) -> ValidationResult:
    """
    Shape-check one generated patient draft.

    Never raises: callers drop invalid drafts and log the reasons.
    """
    if not isinstance(data, dict):
        return ValidationResult(valid=False, errors=["Patiënt moet een JSON-object zijn"])

    errors: List[str] = []
    for field in REQUIRED_FIELDS:
        if _is_missing(data.get(field)):
            errors.append(f"Veld '{field}' is verplicht")

    age = data.get("leeftijd")
    if age is not None:
        if isinstance(age, bool) or not isinstance(age, (int, float)) or not 0 <= age <= 120:
            errors.append("Leeftijd moet een getal zijn tussen 0 en 120")

    sex = data.get("geslacht")
    if not _is_missing(sex) and sex not in ALLOWED_SEXES:
        errors.append("Geslacht moet Man, Vrouw of Anders zijn")

    domain = data.get("domein")
    if domain is not None and not isinstance(domain, str):
        errors.append("Domein moet een string zijn")

    return ValidationResult(valid=not errors, errors=errors)

"""Symptom keyword table and phrase matching for specialty recommendations."""
from typing import Dict, List, Union

from ..models.doctor import Specialty

SPECIALTY_KEYWORDS: Dict[Specialty, List[str]] = {
    Specialty.GENERAL_PRACTICE: [
        "fever", "cold", "flu", "cough", "headache", "fatigue",
        "checkup", "vaccination", "general",
    ],
    Specialty.CARDIOLOGY: [
        "heart", "chest pain", "palpitations", "blood pressure",
        "hypertension", "cardiac", "breathing",
    ],
    Specialty.PEDIATRICS: [
        "child", "baby", "infant", "toddler", "kids", "childhood",
        "growth", "development",
    ],
    Specialty.DERMATOLOGY: [
        "skin", "rash", "acne", "eczema", "psoriasis", "mole",
        "hair loss", "itching",
    ],
    Specialty.ORTHOPEDICS: [
        "bone", "joint", "muscle", "back pain", "knee", "shoulder",
        "fracture", "arthritis", "sports injury",
    ],
}

def keywords_for(specialty: Union[Specialty, str]) -> List[str]:
    """Keyword list for a specialty; empty for anything outside the table."""
    try:
        return SPECIALTY_KEYWORDS.get(Specialty(specialty), [])
    except ValueError:
        return []

def match(query: str, specialty: Union[Specialty, str]) -> List[str]:
    """Return the specialty's keywords that appear verbatim in ``query``.

    Matching is case-insensitive phrase containment, so "chest pain" only
    matches when that exact substring is present.
    """
    text = (query or "").lower()
    return [keyword for keyword in keywords_for(specialty) if keyword in text]

from sqlalchemy.orm import Session
from typing import Iterable, List, Optional
import logging
import math

from ..core.config import settings
from ..models.doctor import Doctor, Specialty
from ..schemas.recommendation import Recommendation
from . import keyword_matcher

logger = logging.getLogger(__name__)

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

def score(matched: int, total: int) -> int:
    """Percentage of a specialty's keywords found in the query."""
    if not matched or not total:
        return 0
    return _round_half_up(100 * matched / total)

def recommend(
    query: str,
    doctors: Iterable[Doctor],
    limit: Optional[int] = None
) -> List[Recommendation]:
    """Rank doctors by keyword overlap between ``query`` and their specialty.

    Doctors without a single matching keyword are dropped. The sort is stable,
    so equal scores keep roster order. When nothing matches, the first
    General Practice doctor is suggested with a fixed score.
    """
    limit = settings.RECOMMENDATION_LIMIT if limit is None else limit
    doctors = list(doctors)
    recommendations = []

    for doctor in doctors:
        matched = keyword_matcher.match(query, doctor.specialty)
        if not matched:
            continue

        total = len(keyword_matcher.keywords_for(doctor.specialty))
        specialty = Specialty(doctor.specialty)
        recommendations.append(Recommendation(
            doctor_id=doctor.id,
            doctor_name=doctor.name,
            specialty=specialty,
            match_score=score(len(matched), total),
            reason=(
                f"Matches your symptoms: {', '.join(matched)}. "
                f"{doctor.name} specializes in {specialty.value} "
                f"and has a {doctor.rating} star rating."
            ),
        ))

    recommendations.sort(key=lambda r: r.match_score, reverse=True)
    top = recommendations[:limit]

    if not top:
        fallback = _fallback(doctors)
        if fallback:
            top.append(fallback)

    return top

def _fallback(doctors: List[Doctor]) -> Optional[Recommendation]:
    for doctor in doctors:
        if doctor.specialty == Specialty.GENERAL_PRACTICE:
            return Recommendation(
                doctor_id=doctor.id,
                doctor_name=doctor.name,
                specialty=Specialty.GENERAL_PRACTICE,
                match_score=settings.FALLBACK_MATCH_SCORE,
                reason=(
                    f"For general health concerns, we recommend seeing {doctor.name}, "
                    "a General Practitioner who can evaluate your symptoms and refer "
                    "you to a specialist if needed."
                ),
            )
    return None

class RecommendationService:
    def __init__(self, db: Session):
        self.db = db

    def recommend(self, query: str) -> List[Recommendation]:
        """Recommend doctors from the full roster."""
        doctors = self.db.query(Doctor).order_by(Doctor.id).all()
        results = recommend(query, doctors)
        logger.info(
            f"Recommendation query matched {len(results)} doctor(s) "
            f"out of {len(doctors)}"
        )
        return results

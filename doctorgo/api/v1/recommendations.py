from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...schemas.recommendation import Recommendation
from ...services.recommendation_service import RecommendationService

router = APIRouter(prefix="/recommendations", tags=["Recommendations"])

@router.get("", response_model=List[Recommendation])
def get_recommendations(query: str = "", db: Session = Depends(get_db)):
    """Suggest doctors whose specialty matches the described symptoms.

    A keyword heuristic, not medical advice.
    """
    return RecommendationService(db).recommend(query)

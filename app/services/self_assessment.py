from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInput, InvalidTransition, NotFound
from app.core.security import sanitize_input
from app.models.review_cycle import ReviewCycle
from app.models.self_assessment import SelfAssessment
from app.services.directory import Actor


def submit_self_assessment(
    db: Session,
    actor: Actor,
    cycle_id: int,
    comments: Optional[str] = None,
    rating: Optional[int] = None,
) -> SelfAssessment:
    """
    One self assessment per user per cycle; submitting again overwrites it
    while the cycle is open.
    """
    if rating is not None and (isinstance(rating, bool) or not 1 <= rating <= 5):
        raise InvalidInput("Self rating must be between 1 and 5", details={"rating": rating})

    cycle = db.query(ReviewCycle).filter(ReviewCycle.id == cycle_id).first()
    if not cycle:
        raise NotFound(f"Review cycle {cycle_id} not found")
    if not cycle.is_open:
        raise InvalidTransition(f"Review cycle '{cycle.label}' is closed")

    assessment = db.query(SelfAssessment).filter(
        SelfAssessment.user_id == actor.id,
        SelfAssessment.cycle_id == cycle_id,
    ).first()
    if not assessment:
        assessment = SelfAssessment(user_id=actor.id, cycle_id=cycle_id)
        db.add(assessment)

    assessment.comments = sanitize_input(comments)
    assessment.rating = rating

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(assessment)
    return assessment

"""
AI assistant routes
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Request

from app.api.deps import get_event_service
from app.schemas.ai import AskRequest, DraftEventRequest
from app.schemas.event import EventFilter
from app.services.ai_service import ai_service
from app.services.event_service import EventService
from app.utils.responses import success_response, rate_limit_error
from app.utils.security import AuthenticatedUser, get_client_ip, get_current_user, rate_limit_check

router = APIRouter()

def _check_rate(request: Request):
    if not rate_limit_check(get_client_ip(request)):
        rate_limit_error()

@router.post("/ask")
async def ask_assistant(
    question: AskRequest,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Answer a question about campus events"""
    _check_rate(request)
    events = event_service.list_events()
    answer = ai_service.answer_question(question.question, events)

    return success_response(message="Answer generated", data=answer)

@router.post("/draft-event")
async def draft_event(
    draft_request: DraftEventRequest,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user)
):
    """Turn a free-text description into event fields"""
    _check_rate(request)
    draft = ai_service.create_event_from_text(draft_request.text, datetime.utcnow())

    return success_response(message="Event draft generated", data=draft)

@router.get("/recommendations")
async def recommend_events(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Recommend upcoming events based on the caller's registrations"""
    _check_rate(request)
    attended = event_service.list_user_events(user.uid)
    attended_ids = {e.id for e in attended}
    upcoming = [
        e for e in event_service.list_events(EventFilter(starts_after=datetime.utcnow()))
        if e.id not in attended_ids
    ]
    recommendations = ai_service.recommend_events(attended, upcoming)
    recommended = [e for e in upcoming if e.id in set(recommendations.recommended_event_ids)]

    return success_response(
        message="Recommendations generated",
        data={"events": recommended}
    )

@router.get("/insights")
async def event_insights(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Summary of event activity with counts per location"""
    _check_rate(request)
    analysis = ai_service.analyze_events(event_service.list_events())

    return success_response(message="Insights generated", data=analysis)

from __future__ import annotations

from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from .admission.rate_limit import RateLimitMiddleware
from .admission.request_id import RequestIdMiddleware
from .auth.dependencies import bearer_token, require_user
from .auth.tokens import issue_token, revoke_token
from .auth.users import authenticate
from .decide.config import DEFAULT_DECIDE_CONFIG
from .decide.feedback import get_owned_decision, record_event, submit_feedback
from .decide.history import HistoryQuery, list_decisions, list_events
from .decide.models import (
    CreateEventRequest,
    DecideRequest,
    DecideResponse,
    Decision,
    DecisionEvent,
    FeedbackRequest,
    FeedbackStatus,
)
from .decide.pipeline import decide as run_decide
from .errors import install_error_handlers
from .preferences.models import UpdateProfileRequest, UserPreference
from .preferences.store import preference_store

NEXT_CURSOR_HEADER = "X-Next-Cursor"
_cfg = DEFAULT_DECIDE_CONFIG

app = FastAPI(title="Meal Decision API", version="1.0.0")
install_error_handlers(app)
# Last added runs first: request id wraps the rate limiter
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


def _history_query(
    limit: int = Query(default=_cfg.history_default_limit, ge=1, le=_cfg.history_max_limit),
    cursor: str | None = Query(default=None),
    from_time: datetime | None = Query(default=None, alias="from"),
    to_time: datetime | None = Query(default=None, alias="to"),
) -> HistoryQuery:
    return HistoryQuery(limit=limit, cursor=cursor, from_time=from_time, to_time=to_time)


def _set_next_cursor(response: Response, next_cursor: str | None) -> None:
    if next_cursor:
        response.headers[NEXT_CURSOR_HEADER] = next_cursor


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(body: LoginRequest) -> dict:
    user = authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": issue_token(user), "tokenType": "Bearer", "user": user}


@app.post("/auth/logout")
def logout(request: Request, user: dict = Depends(require_user)) -> dict:
    revoke_token(bearer_token(request))
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


# ── Decide ───────────────────────────────────────────────────────────────


@app.post("/decide", response_model=DecideResponse)
def decide(
    body: DecideRequest | None = None,
    user: dict = Depends(require_user),
) -> DecideResponse:
    return run_decide(user["user_id"], body)


# ── Decisions ────────────────────────────────────────────────────────────


@app.get("/decisions", response_model=list[Decision])
def decisions(
    response: Response,
    base: HistoryQuery = Depends(_history_query),
    has_feedback: bool | None = Query(default=None, alias="hasFeedback"),
    feedback_status: FeedbackStatus | None = Query(default=None, alias="feedbackStatus"),
    reason_code: str | None = Query(default=None, alias="reasonCode"),
    user: dict = Depends(require_user),
) -> list[Decision]:
    query = HistoryQuery(
        limit=base.limit,
        cursor=base.cursor,
        from_time=base.from_time,
        to_time=base.to_time,
        has_feedback=has_feedback,
        feedback_status=feedback_status,
        reason_code=reason_code,
    )
    page = list_decisions(user["user_id"], query)
    _set_next_cursor(response, page.next_cursor)
    return page.items


@app.get("/decisions/{decision_id}", response_model=Decision)
def decision_detail(decision_id: str, user: dict = Depends(require_user)) -> Decision:
    return get_owned_decision(user["user_id"], decision_id)


@app.post("/decisions/{decision_id}/feedback", response_model=Decision)
def decision_feedback(
    decision_id: str,
    body: FeedbackRequest,
    user: dict = Depends(require_user),
) -> Decision:
    return submit_feedback(user["user_id"], decision_id, body)


@app.post("/decisions/{decision_id}/events", response_model=DecisionEvent, status_code=201)
def decision_event(
    decision_id: str,
    body: CreateEventRequest,
    user: dict = Depends(require_user),
) -> DecisionEvent:
    return record_event(user["user_id"], decision_id, body)


@app.get("/decisions/{decision_id}/events", response_model=list[DecisionEvent])
def decision_events(
    decision_id: str,
    response: Response,
    query: HistoryQuery = Depends(_history_query),
    user: dict = Depends(require_user),
) -> list[DecisionEvent]:
    get_owned_decision(user["user_id"], decision_id)
    page = list_events(query, decision_id=decision_id)
    _set_next_cursor(response, page.next_cursor)
    return page.items


@app.get("/events", response_model=list[DecisionEvent])
def user_events(
    response: Response,
    query: HistoryQuery = Depends(_history_query),
    user: dict = Depends(require_user),
) -> list[DecisionEvent]:
    page = list_events(query, user_id=user["user_id"])
    _set_next_cursor(response, page.next_cursor)
    return page.items


# ── Preferences ──────────────────────────────────────────────────────────


@app.get("/preferences", response_model=UserPreference)
def preferences(user: dict = Depends(require_user)) -> UserPreference:
    return preference_store.get(user["user_id"])


@app.put("/preferences/profile", response_model=UserPreference)
def preferences_profile(
    body: UpdateProfileRequest,
    user: dict = Depends(require_user),
) -> UserPreference:
    return preference_store.upsert_profile(user["user_id"], body.to_profile())

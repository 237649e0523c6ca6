"""Practice endpoints: submissions, feed and the session timer."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.auth.dependencies import get_current_user
from skillforge.config import get_settings
from skillforge.database import get_session
from skillforge.db.models import Practice, User
from skillforge.dependencies import get_redis_dep, get_timer_registry
from skillforge.exceptions import ValidationFailedError
from skillforge.practice import service
from skillforge.practice.schemas import (
    PracticeListResponse,
    PracticeResponse,
    PracticeSubmitResponse,
    StartTimerRequest,
    SubmitPracticeRequest,
    SubmitTimerRequest,
    TimerResponse,
)
from skillforge.practice.timer import ActiveTimer, TimerRegistry, TimerStatus
from skillforge.progression.router import achievement_response, progress_response
from skillforge.progression.service import get_category
from skillforge.social.router import public_user
from skillforge.storage import delete_image

router = APIRouter(prefix="/api/v1", tags=["Practice"])


def practice_response(practice: Practice) -> PracticeResponse:
    return PracticeResponse(
        id=practice.id,
        user=public_user(practice.user),
        skill_category_id=practice.skill_category_id,
        skill_category_name=practice.category.name,
        duration=practice.duration,
        image=practice.image,
        notes=practice.notes,
        qualifying=practice.qualifying,
        created_at=practice.created_at,
    )


def submit_response(outcome: service.PracticeOutcome) -> PracticeSubmitResponse:
    result = outcome.result
    return PracticeSubmitResponse(
        practice=practice_response(outcome.practice),
        progress=progress_response(outcome.progress) if outcome.progress is not None else None,
        streak_outcome=result.outcome.value if result else None,
        level_changed=result.level_changed if result else False,
        tokens_awarded=result.tokens_awarded if result else 0,
        unlocked_achievements=[achievement_response(a) for a in outcome.achievements],
    )


def timer_response(active: ActiveTimer | None) -> TimerResponse:
    if active is None:
        return TimerResponse(status=TimerStatus.INACTIVE.value)
    state = active.state
    return TimerResponse(
        status=state.status.value,
        skill_category_id=active.skill_category_id,
        duration_minutes=active.duration_minutes,
        duration_seconds=state.duration,
        remaining_seconds=state.remaining,
        progress=round(state.progress, 4),
        started_at=active.started_at,
    )


async def _commit_submission(db: AsyncSession, outcome: service.PracticeOutcome) -> None:
    try:
        await db.commit()
    except Exception:
        await delete_image(outcome.practice.image)
        raise


# --- Practice ---


@router.post("/practice", response_model=PracticeSubmitResponse, status_code=201)
async def submit_practice(
    body: SubmitPracticeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Record a practice session with its photo and update progress."""
    outcome = await service.submit_practice(
        db, redis, user, body.skill_category_id, body.duration, body.image, body.notes,
    )
    await _commit_submission(db, outcome)
    return submit_response(outcome)


@router.get("/practice", response_model=PracticeListResponse)
async def list_practices(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    skill_category_id: int | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Own practices, newest first."""
    practices, total = await service.list_user_practices(db, user.id, page, per_page, skill_category_id)
    return PracticeListResponse(
        practices=[practice_response(p) for p in practices],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/practice/feed", response_model=PracticeListResponse)
async def practice_feed(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Own and friends' practices, newest first."""
    practices, total = await service.friends_feed(db, user.id, page, per_page)
    return PracticeListResponse(
        practices=[practice_response(p) for p in practices],
        total=total,
        page=page,
        per_page=per_page,
    )


# --- Timer ---


@router.get("/practice/timer", response_model=TimerResponse)
async def get_timer(
    user: User = Depends(get_current_user),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    """Current session timer (status ``inactive`` when none exists)."""
    return timer_response(registry.get(user.id))


@router.post("/practice/timer/start", response_model=TimerResponse)
async def start_timer(
    body: StartTimerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    """Start a countdown. Replaces any existing timer."""
    limit = get_settings().timer_max_duration_minutes
    if body.duration_minutes > limit:
        raise ValidationFailedError(f"Timer duration must not exceed {limit} minutes")
    await get_category(db, body.skill_category_id)
    return timer_response(await registry.start(user.id, body.skill_category_id, body.duration_minutes))


@router.post("/practice/timer/pause", response_model=TimerResponse)
async def pause_timer(
    user: User = Depends(get_current_user),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    return timer_response(await registry.pause(user.id))


@router.post("/practice/timer/resume", response_model=TimerResponse)
async def resume_timer(
    user: User = Depends(get_current_user),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    return timer_response(await registry.resume(user.id))


@router.post("/practice/timer/reset", response_model=TimerResponse)
async def reset_timer(
    user: User = Depends(get_current_user),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    """Back to inactive with the configured duration."""
    return timer_response(await registry.reset(user.id))


@router.post("/practice/timer/submit", response_model=PracticeSubmitResponse, status_code=201)
async def submit_timer(
    body: SubmitTimerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    """Record the completed timer session as a practice, then clear the timer."""
    active = registry.claim(user.id)
    try:
        outcome = await service.submit_practice(
            db, redis, user, active.skill_category_id, active.duration_minutes, body.image, body.notes,
        )
        await _commit_submission(db, outcome)
    except Exception:
        registry.restore(active)
        raise
    return submit_response(outcome)


@router.get("/practice/{practice_id}", response_model=PracticeResponse)
async def get_practice(
    practice_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """A single practice; visible to its owner and the owner's friends."""
    return practice_response(await service.get_practice(db, user, practice_id))

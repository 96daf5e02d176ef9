"""
Admin content management routes and the daily cron trigger.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from poster_pipeline.templates import PosterCatalog, campaign_today
from sevadar.config import get_settings
from sevadar.db import DbClient, FeedPostRecord, MessageRecord, ProfileRecord, QuizRecord
from sevadar.dependencies import (
    get_db_client,
    get_poster_catalog,
    get_push_notifier,
    require_admin,
)
from sevadar.notifications import PushNotifier, send_daily_notification
from sevadar.routes import feed_post_response, poll_response, profile_response
from sevadar.schemas import (
    DailyNotificationResponse,
    FeedPostCreateRequest,
    FeedPostResponse,
    MessageListResponse,
    MessageResponse,
    MessageUpdateRequest,
    PollCreateRequest,
    PollListResponse,
    PollResponse,
    QuizListResponse,
    QuizResponse,
    QuizUpsertRequest,
    StatusResponse,
    UserListResponse,
)

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/admin")
cron_router = APIRouter(prefix="/cron")


def message_response(message: MessageRecord) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        user_id=message.user_id,
        content=message.content,
        status=message.status,
        admin_reply=message.admin_reply,
        created_at=message.created_at,
    )


def admin_quiz_response(quiz: QuizRecord) -> QuizResponse:
    return QuizResponse(
        id=quiz.id,
        date=quiz.date,
        question=quiz.question,
        options=quiz.options,
        points=quiz.points,
        correct_index=quiz.correct_index,
    )


@admin_router.get("/users", response_model=UserListResponse)
def list_users(
    search: str | None = Query(None, max_length=100),
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    """
    Non-admin users by points, optionally filtered by name, phone or village.
    """
    users = db.list_profiles(search=(search or "").strip() or None)
    return UserListResponse(users=[profile_response(u) for u in users])


@admin_router.get("/polls", response_model=PollListResponse)
def list_polls(
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return PollListResponse(
        polls=[poll_response(p, None, show_stats=True) for p in db.list_polls()]
    )


@admin_router.post("/polls", response_model=PollResponse, status_code=201)
def create_poll(
    payload: PollCreateRequest,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    poll = db.create_poll(payload.question.strip(), payload.options)
    logger.info("Admin %s created poll %s", admin.id, poll.id)
    return poll_response(poll, None, show_stats=True)


@admin_router.delete("/polls/{poll_id}", response_model=StatusResponse)
def delete_poll(
    poll_id: str,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_poll(poll_id):
        raise HTTPException(status_code=404, detail="Poll not found")
    return StatusResponse(status="deleted")


@admin_router.get("/quizzes", response_model=QuizListResponse)
def list_quizzes(
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    """
    Today's quiz and every scheduled one after it.
    """
    today = campaign_today(get_settings().campaign_timezone).isoformat()
    return QuizListResponse(
        quizzes=[admin_quiz_response(q) for q in db.list_quizzes_from(today)]
    )


@admin_router.put("/quizzes", response_model=QuizResponse)
def upsert_quiz(
    payload: QuizUpsertRequest,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    """
    Create the quiz for a date, or replace it if that date already has one.
    """
    quiz = db.upsert_quiz(
        QuizRecord(
            id=uuid.uuid4().hex,
            date=payload.date,
            question=payload.question.strip(),
            options=[o.strip() for o in payload.options],
            correct_index=payload.correct_index,
            points=payload.points,
        )
    )
    return admin_quiz_response(quiz)


@admin_router.delete("/quizzes/{quiz_id}", response_model=StatusResponse)
def delete_quiz(
    quiz_id: str,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_quiz(quiz_id):
        raise HTTPException(status_code=404, detail="Quiz not found")
    return StatusResponse(status="deleted")


@admin_router.post("/feed", response_model=FeedPostResponse, status_code=201)
def create_feed_post(
    payload: FeedPostCreateRequest,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if payload.type == "video" and not payload.url:
        raise HTTPException(status_code=400, detail="Video posts need a url")
    if payload.type == "image" and not (payload.images or payload.url):
        raise HTTPException(status_code=400, detail="Image posts need at least one image")
    post = db.create_feed_post(
        FeedPostRecord(
            id=uuid.uuid4().hex,
            type=payload.type,
            title=payload.title.strip(),
            description=payload.description,
            url=payload.url,
            images=payload.images,
        )
    )
    return feed_post_response(post)


@admin_router.delete("/feed/{post_id}", response_model=StatusResponse)
def delete_feed_post(
    post_id: str,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_feed_post(post_id):
        raise HTTPException(status_code=404, detail="Post not found")
    return StatusResponse(status="deleted")


@admin_router.get("/messages", response_model=MessageListResponse)
def list_messages(
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    return MessageListResponse(messages=[message_response(m) for m in db.list_messages()])


@admin_router.patch("/messages/{message_id}", response_model=MessageResponse)
def update_message(
    message_id: str,
    payload: MessageUpdateRequest,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    """
    Mark a suggestion read, or reply to it (which marks it replied).
    """
    reply = payload.admin_reply.strip() if payload.admin_reply else None
    status = payload.status or ("replied" if reply else "read")
    message = db.update_message(message_id, status=status, admin_reply=reply)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return message_response(message)


@admin_router.delete("/messages/{message_id}", response_model=StatusResponse)
def delete_message(
    message_id: str,
    admin: ProfileRecord = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    if not db.delete_message(message_id):
        raise HTTPException(status_code=404, detail="Message not found")
    return StatusResponse(status="deleted")


@cron_router.get("/daily", response_model=DailyNotificationResponse)
def daily_notification(
    authorization: str | None = Header(None),
    db: DbClient = Depends(get_db_client),
    catalog: PosterCatalog = Depends(get_poster_catalog),
    notifier: PushNotifier = Depends(get_push_notifier),
):
    """
    Called once a day by the scheduler with `Authorization: Bearer <CRON_SECRET>`.
    """
    settings = get_settings()
    if not settings.cron_secret or authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")

    message, report = send_daily_notification(
        db, catalog, notifier, settings.notification_link
    )
    if message is None:
        return DailyNotificationResponse(message="Nothing special to notify today.")
    if report is None:
        return DailyNotificationResponse(message="No users to notify.", kind=message.kind)
    return DailyNotificationResponse(
        message="sent", kind=message.kind, sent=report.sent, failed=report.failed
    )

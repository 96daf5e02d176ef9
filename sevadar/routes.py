"""
HTTP routes for signed-in users.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from poster_pipeline.compositor import PosterCompositor
from poster_pipeline.image_utils import CropArea
from poster_pipeline.templates import PosterCatalog, PosterTemplate, campaign_today
from sevadar import gamification
from sevadar.config import get_settings
from sevadar.db import (
    CommentRecord,
    DbClient,
    FeedPostRecord,
    PollRecord,
    ProfileRecord,
    QuizRecord,
    RenderJobRecord,
)
from sevadar.dependencies import (
    get_compositor,
    get_current_user,
    get_db_client,
    get_poster_catalog,
    get_queue_client,
    get_storage_client,
)
from sevadar.gamification import AwardResult, IneligibleActionError
from sevadar.leaderboard import HOME_WIDGET_LIMIT, LEADERBOARD_LIMIT, get_leaderboard, rank_of
from sevadar.onboarding import OnboardingDetails, complete_onboarding, store_profile_photo
from sevadar.posters import check_photo_source, render_params, render_template
from sevadar.queue import RenderQueue
from sevadar.schemas import (
    AwardResponse,
    CommentCreatedResponse,
    CommentListResponse,
    CommentRequest,
    CommentResponse,
    FeedListResponse,
    FeedPostResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LikeResponse,
    MessageRequest,
    MessageResponse,
    OnboardingRequest,
    OnboardingResponse,
    PhotoUploadRequest,
    PhotoUploadResponse,
    PollResponse,
    PosterListResponse,
    PosterTemplateResponse,
    PreviewResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    PushTokenRequest,
    QuizAnswerRequest,
    QuizAnswerResponse,
    QuizResponse,
    RenderJobResponse,
    RenderRequest,
    StatusResponse,
    TransliterateRequest,
    TransliterateResponse,
    VoteRequest,
    VoteResponse,
)
from sevadar.storage import StorageClient
from sevadar.transliteration import transliterate
from shared.types import RenderStatus

logger = logging.getLogger(__name__)

router = APIRouter()


@contextmanager
def domain_errors():
    """Translates service-layer exceptions into HTTP errors."""
    try:
        yield
    except (KeyError, IndexError):
        raise
    except IneligibleActionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def profile_response(profile: ProfileRecord, rank: int | None = None) -> ProfileResponse:
    return ProfileResponse(**profile.as_dict(), rank=rank)


def award_response(result: AwardResult) -> AwardResponse:
    return AwardResponse(**result.as_dict())


def poll_response(
    poll: PollRecord, my_choice: int | None, show_stats: bool
) -> PollResponse:
    return PollResponse(
        id=poll.id,
        question=poll.question,
        options=poll.options,
        votes=poll.votes if show_stats else None,
        total_votes=sum(poll.votes) if show_stats else None,
        my_choice=my_choice,
        is_active=poll.is_active,
    )


def quiz_response(
    quiz: QuizRecord, user: ProfileRecord, db: DbClient
) -> QuizResponse:
    submission = None if user.is_admin else db.get_quiz_submission(quiz.id, user.id)
    reveal = user.is_admin or submission is not None
    return QuizResponse(
        id=quiz.id,
        date=quiz.date,
        question=quiz.question,
        options=quiz.options,
        points=quiz.points,
        correct_index=quiz.correct_index if reveal else None,
        my_answer=submission.selected_index if submission else None,
        is_correct=submission.is_correct if submission else None,
    )


def comment_response(comment: CommentRecord) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
    )


def feed_post_response(post: FeedPostRecord, liked: bool = False) -> FeedPostResponse:
    return FeedPostResponse(
        id=post.id,
        type=post.type,
        title=post.title,
        description=post.description,
        url=post.url,
        images=post.images,
        likes=post.likes,
        liked=liked,
    )


def template_response(template: PosterTemplate) -> PosterTemplateResponse:
    return PosterTemplateResponse(**template.to_dict())


def render_job_response(job: RenderJobRecord, storage: StorageClient) -> RenderJobResponse:
    url = None
    if job.status == RenderStatus.SUCCESS and job.output_path:
        url = storage.presign_get(job.output_path)
    return RenderJobResponse(
        job_id=job.job_id,
        template_id=job.template_id,
        status=job.status.name,
        stage=job.stage,
        url=url,
        error=job.error,
    )


def _require_template(catalog: PosterCatalog, poster_id: str) -> PosterTemplate:
    template = catalog.get(poster_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Poster not found")
    return template


# Profile


@router.post("/profile", response_model=ProfileResponse)
def register_profile(
    x_user_id: str | None = Header(None),
    x_user_phone: str | None = Header(None),
    db: DbClient = Depends(get_db_client),
):
    """
    Create the profile for a freshly authenticated user. Idempotent.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    profile = db.get_profile(x_user_id)
    if profile is None:
        profile = db.upsert_profile(ProfileRecord(id=x_user_id, phone=x_user_phone))
        logger.info("Registered profile %s", x_user_id)
    return profile_response(profile)


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    return profile_response(user, rank=rank_of(db, user))


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    fields = payload.model_dump(exclude_none=True)
    updated = db.update_profile(user.id, **fields) if fields else user
    return profile_response(updated)


@router.post("/profile/onboarding", response_model=OnboardingResponse)
def finish_onboarding(
    payload: OnboardingRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with domain_errors():
        check_photo_source(
            payload.avatar_url, get_settings().trusted_photo_url_prefixes, user.avatar_url
        )
    details = OnboardingDetails(
        full_name=payload.full_name.strip(),
        village=payload.village.strip(),
        avatar_url=payload.avatar_url,
    )
    if payload.designation and payload.designation.strip():
        details.designation = payload.designation.strip()
    with domain_errors():
        profile, award = complete_onboarding(
            db, user.id, details, get_settings().points_onboarding
        )
    return OnboardingResponse(profile=profile_response(profile), award=award_response(award))


@router.post("/profile/photo", response_model=PhotoUploadResponse)
def upload_profile_photo(
    payload: PhotoUploadRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    if not payload.image.startswith("data:"):
        raise HTTPException(status_code=400, detail="Photo must be a data URI")
    crop = CropArea(**payload.crop.model_dump()) if payload.crop else None
    with domain_errors():
        url = store_profile_photo(storage, user.id, payload.image, crop)
    db.update_profile(user.id, avatar_url=url)
    return PhotoUploadResponse(avatar_url=url)


@router.post("/push-tokens", response_model=StatusResponse)
def register_push_token(
    payload: PushTokenRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    db.save_push_token(payload.token, user.id)
    return StatusResponse(status="ok")


@router.post("/transliterate", response_model=TransliterateResponse)
def transliterate_text(
    payload: TransliterateRequest,
    user: ProfileRecord = Depends(get_current_user),
):
    return TransliterateResponse(text=transliterate(payload.text))


# Posters


@router.get("/posters/today", response_model=PosterListResponse)
def todays_posters(catalog: PosterCatalog = Depends(get_poster_catalog)):
    return PosterListResponse(posters=[template_response(p) for p in catalog.todays()])


@router.get("/posters/upcoming", response_model=PosterListResponse)
def upcoming_posters(catalog: PosterCatalog = Depends(get_poster_catalog)):
    return PosterListResponse(posters=[template_response(p) for p in catalog.upcoming()])


@router.get("/posters/general", response_model=PosterListResponse)
def general_posters(catalog: PosterCatalog = Depends(get_poster_catalog)):
    return PosterListResponse(posters=[template_response(p) for p in catalog.general()])


@router.get("/posters/{poster_id}", response_model=PosterTemplateResponse)
def get_poster(poster_id: str, catalog: PosterCatalog = Depends(get_poster_catalog)):
    return template_response(_require_template(catalog, poster_id))


@router.post("/posters/{poster_id}/preview", response_model=PreviewResponse)
def preview_poster(
    poster_id: str,
    payload: RenderRequest,
    user: ProfileRecord = Depends(get_current_user),
    catalog: PosterCatalog = Depends(get_poster_catalog),
    compositor: PosterCompositor = Depends(get_compositor),
):
    """
    Render synchronously and return the poster inline as a data URI.
    """
    template = _require_template(catalog, poster_id)
    with domain_errors():
        check_photo_source(
            payload.photo, get_settings().trusted_photo_url_prefixes, user.avatar_url
        )
    params = render_params(
        user,
        full_name=payload.full_name,
        designation=payload.designation,
        village=payload.village,
        photo=payload.photo,
        geometry=payload.geometry.model_dump(),
    )
    poster = render_template(compositor, catalog, template, params)
    if not poster.ok:
        raise HTTPException(status_code=502, detail=poster.error)
    return PreviewResponse(
        data_uri=poster.data_uri,
        layers=poster.layers,
        name_font_size=poster.name_font_size,
        status_font_size=poster.status_font_size,
    )


@router.post(
    "/posters/{poster_id}/render", response_model=RenderJobResponse, status_code=202
)
def request_render(
    poster_id: str,
    payload: RenderRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    queue: RenderQueue = Depends(get_queue_client),
    catalog: PosterCatalog = Depends(get_poster_catalog),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Enqueue a render job. The worker composes and uploads the JPEG.
    """
    template = _require_template(catalog, poster_id)
    with domain_errors():
        check_photo_source(
            payload.photo, get_settings().trusted_photo_url_prefixes, user.avatar_url
        )
    params = render_params(
        user,
        full_name=payload.full_name,
        designation=payload.designation,
        village=payload.village,
        photo=payload.photo,
        geometry=payload.geometry.model_dump(),
    )
    job = db.create_render_job(user.id, template.id, params)
    queue.enqueue(job.job_id)
    return render_job_response(job, storage)


@router.get("/render-jobs/{job_id}", response_model=RenderJobResponse)
def render_job_status(
    job_id: str,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    job = db.get_render_job(job_id)
    if not job or (job.user_id != user.id and not user.is_admin):
        raise HTTPException(status_code=404, detail="Job not found")
    return render_job_response(job, storage)


# Points and leaderboard


@router.post("/points/daily-poster", response_model=AwardResponse)
def claim_daily_poster_bonus(
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    """
    Credit the once-per-day poster download/share bonus.
    """
    result = gamification.award_daily_poster(db, user.id)
    return award_response(result)


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    limit: int = Query(LEADERBOARD_LIMIT, ge=1, le=LEADERBOARD_LIMIT),
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    entries = get_leaderboard(db, limit=limit)
    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse(**e.as_dict()) for e in entries],
        my_rank=rank_of(db, user),
        my_points=None if user.is_admin else user.points,
    )


@router.get("/leaderboard/home", response_model=LeaderboardResponse)
def home_leaderboard(db: DbClient = Depends(get_db_client)):
    """Top entries for the home screen widget; no sign-in needed."""
    entries = get_leaderboard(db, limit=HOME_WIDGET_LIMIT)
    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse(**e.as_dict()) for e in entries]
    )


# Polls


@router.get("/polls/active", response_model=PollResponse)
def active_poll(
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    poll = db.latest_active_poll()
    if not poll:
        raise HTTPException(status_code=404, detail="No active poll")
    my_choice = None if user.is_admin else db.get_poll_choice(poll.id, user.id)
    return poll_response(poll, my_choice, show_stats=user.is_admin or my_choice is not None)


@router.post("/polls/{poll_id}/vote", response_model=VoteResponse)
def vote(
    poll_id: str,
    payload: VoteRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with domain_errors():
        outcome = gamification.cast_vote(db, user.id, poll_id, payload.option_index)
    poll = db.get_poll(poll_id)
    return VoteResponse(
        poll_id=poll_id,
        already_voted=not outcome.created,
        selected_index=outcome.selected_index,
        votes=poll.votes if poll else [],
        points_awarded=outcome.points_awarded,
        points_total=outcome.points_total,
    )


# Daily quiz


@router.get("/quizzes/today", response_model=QuizResponse)
def todays_quiz(
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    today = campaign_today(get_settings().campaign_timezone).isoformat()
    quiz = db.get_quiz_for_date(today)
    if not quiz:
        raise HTTPException(status_code=404, detail="No quiz today")
    return quiz_response(quiz, user, db)


@router.post("/quizzes/{quiz_id}/answer", response_model=QuizAnswerResponse)
def answer_quiz(
    quiz_id: str,
    payload: QuizAnswerRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    quiz = db.get_quiz(quiz_id)
    if quiz is None:
        raise HTTPException(status_code=404, detail="Quiz not found")
    with domain_errors():
        outcome = gamification.answer_quiz(db, user.id, quiz_id, payload.selected_index)
    return QuizAnswerResponse(
        quiz_id=quiz_id,
        already_answered=not outcome.created,
        selected_index=outcome.selected_index,
        is_correct=outcome.is_correct,
        correct_index=quiz.correct_index,
        points_awarded=outcome.points_awarded,
        points_total=outcome.points_total,
    )


# Feed


@router.get("/feed", response_model=FeedListResponse)
def list_feed(
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    posts = db.list_feed_posts()
    return FeedListResponse(
        posts=[feed_post_response(p, db.has_liked(p.id, user.id)) for p in posts]
    )


@router.post("/feed/{post_id}/like", response_model=LikeResponse)
def like_post(
    post_id: str,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with domain_errors():
        outcome = gamification.like_post(db, user.id, post_id)
    post = db.get_feed_post(post_id)
    return LikeResponse(
        post_id=post_id,
        already_liked=not outcome.created,
        likes=post.likes if post else 0,
        points_awarded=outcome.points_awarded,
        points_total=outcome.points_total,
    )


@router.post("/feed/{post_id}/share", response_model=AwardResponse)
def share_post(
    post_id: str,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with domain_errors():
        result = gamification.share_post(db, user.id, post_id)
    return award_response(result)


@router.post("/feed/{post_id}/comments", response_model=CommentCreatedResponse)
def add_comment(
    post_id: str,
    payload: CommentRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with domain_errors():
        comment, award = gamification.comment_on_post(db, user.id, post_id, payload.content)
    return CommentCreatedResponse(comment=comment_response(comment), award=award_response(award))


@router.get("/feed/{post_id}/comments", response_model=CommentListResponse)
def list_comments(
    post_id: str,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    if db.get_feed_post(post_id) is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return CommentListResponse(
        comments=[comment_response(c) for c in db.list_comments(post_id)]
    )


# Suggestions


@router.post("/messages", response_model=MessageResponse)
def send_message(
    payload: MessageRequest,
    user: ProfileRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    message = db.create_message(user.id, payload.content.strip())
    return MessageResponse(
        id=message.id,
        user_id=message.user_id,
        content=message.content,
        status=message.status,
        admin_reply=message.admin_reply,
        created_at=message.created_at,
    )

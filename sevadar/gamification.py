"""
Point award rules.

Every point-bearing action is written to the point ledger under a
(user, action, scope key) triple that the database keeps unique, so replays
from double taps, retries or a second device are absorbed as "already
awarded" rather than counted again. Admin accounts never earn points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from poster_pipeline.templates import campaign_today
from sevadar.config import Settings, get_settings
from sevadar.db import CommentRecord, DbClient, ProfileRecord, SubmissionOutcome
from shared.types import AwardOutcome, PointAction

logger = logging.getLogger(__name__)

ONBOARDING_SCOPE = "setup"


class IneligibleActionError(Exception):
    """Raised when a profile may not perform a point-bearing action."""


@dataclass
class AwardResult:
    outcome: AwardOutcome
    total: int
    amount: int = 0

    @property
    def awarded(self) -> bool:
        return self.outcome == AwardOutcome.AWARDED

    def as_dict(self) -> dict:
        return {"outcome": self.outcome.value, "total": self.total, "amount": self.amount}


def points_for(action: PointAction, settings: Settings | None = None) -> int:
    """Configured point value for an action. Quiz awards use the quiz's own value."""
    settings = settings or get_settings()
    return {
        PointAction.DAILY_POSTER: settings.points_daily_poster,
        PointAction.VOTE: settings.points_vote,
        PointAction.QUIZ_CORRECT: settings.points_quiz_default,
        PointAction.LIKE: settings.points_like,
        PointAction.SHARE: settings.points_share,
        PointAction.COMMENT: settings.points_comment,
        PointAction.ONBOARDING: settings.points_onboarding,
    }[action]


def _load_profile(db: DbClient, user_id: str) -> ProfileRecord:
    profile = db.get_profile(user_id)
    if profile is None:
        raise LookupError(f"Profile {user_id} not found")
    return profile


def award_once(
    db: DbClient, user_id: str, action: PointAction, scope_key: str, amount: int
) -> AwardResult:
    """
    Adds `amount` to the user's total unless this (action, scope_key) was
    already credited.

    Returns:
        AwardResult: AWARDED with the new total, ALREADY_AWARDED or
        INELIGIBLE with the unchanged total.

    Raises:
        LookupError: If the profile does not exist.
    """
    profile = _load_profile(db, user_id)
    if profile.is_admin:
        return AwardResult(AwardOutcome.INELIGIBLE, profile.points)

    total = db.record_award(user_id, action, scope_key, amount)
    if total is None:
        logger.info(
            "Award %s/%s already credited for user %s", action.value, scope_key, user_id
        )
        return AwardResult(AwardOutcome.ALREADY_AWARDED, _load_profile(db, user_id).points)

    logger.info(
        "Awarded %d points to %s for %s/%s (total %d)",
        amount,
        user_id,
        action.value,
        scope_key,
        total,
    )
    return AwardResult(AwardOutcome.AWARDED, total, amount)


def award_daily_poster(
    db: DbClient,
    user_id: str,
    today: date | None = None,
    amount: Optional[int] = None,
    settings: Settings | None = None,
) -> AwardResult:
    """Credits the once-per-day poster download/share bonus."""
    settings = settings or get_settings()
    day = (today or campaign_today(settings.campaign_timezone)).isoformat()
    if amount is None:
        amount = settings.points_daily_poster
    result = award_once(db, user_id, PointAction.DAILY_POSTER, day, amount)
    if result.awarded:
        db.update_profile(user_id, last_poster_credit_day=day)
    return result


def cast_vote(
    db: DbClient,
    user_id: str,
    poll_id: str,
    option_index: int,
    amount: Optional[int] = None,
) -> SubmissionOutcome:
    """
    Records a vote and its points in one write. A repeat vote reports the
    option chosen the first time and leaves counts and points untouched.
    """
    profile = _load_profile(db, user_id)
    if profile.is_admin:
        raise IneligibleActionError("Admins cannot vote in polls")
    poll = db.get_poll(poll_id)
    if poll is None:
        raise LookupError(f"Poll {poll_id} not found")
    if not poll.is_active:
        raise ValueError("Poll is closed")
    if not 0 <= option_index < len(poll.options):
        raise ValueError(f"Option {option_index} is out of range")
    if amount is None:
        amount = points_for(PointAction.VOTE)
    outcome = db.submit_vote(poll_id, user_id, option_index, amount)
    if not outcome.created:
        logger.info("User %s already voted on poll %s", user_id, poll_id)
    return outcome


def answer_quiz(
    db: DbClient,
    user_id: str,
    quiz_id: str,
    selected_index: int,
    today: date | None = None,
) -> SubmissionOutcome:
    """Records the one allowed answer to today's quiz, with points if correct."""
    profile = _load_profile(db, user_id)
    if profile.is_admin:
        raise IneligibleActionError("Admins cannot play the quiz")
    quiz = db.get_quiz(quiz_id)
    if quiz is None:
        raise LookupError(f"Quiz {quiz_id} not found")
    day = (today or campaign_today(get_settings().campaign_timezone)).isoformat()
    if quiz.date != day:
        raise ValueError(f"Quiz {quiz_id} is not open today")
    if not 0 <= selected_index < len(quiz.options):
        raise ValueError(f"Option {selected_index} is out of range")
    is_correct = selected_index == quiz.correct_index
    outcome = db.submit_quiz_answer(
        quiz_id, user_id, selected_index, is_correct, quiz.points if is_correct else 0
    )
    if not outcome.created:
        logger.info("User %s already answered quiz %s", user_id, quiz_id)
    return outcome


def like_post(
    db: DbClient, user_id: str, post_id: str, amount: Optional[int] = None
) -> SubmissionOutcome:
    """Likes are one-way; admins may like but earn nothing."""
    profile = _load_profile(db, user_id)
    if amount is None:
        amount = points_for(PointAction.LIKE)
    return db.like_post(post_id, user_id, 0 if profile.is_admin else amount)


def share_post(
    db: DbClient, user_id: str, post_id: str, amount: Optional[int] = None
) -> AwardResult:
    if db.get_feed_post(post_id) is None:
        raise LookupError(f"Feed post {post_id} not found")
    if amount is None:
        amount = points_for(PointAction.SHARE)
    return award_once(db, user_id, PointAction.SHARE, post_id, amount)


def comment_on_post(
    db: DbClient,
    user_id: str,
    post_id: str,
    content: str,
    amount: Optional[int] = None,
) -> tuple[CommentRecord, AwardResult]:
    """Every comment is stored; only the first one on a post earns points."""
    content = (content or "").strip()
    if not content:
        raise ValueError("Comment cannot be empty")
    comment = db.add_comment(post_id, user_id, content)
    if amount is None:
        amount = points_for(PointAction.COMMENT)
    return comment, award_once(db, user_id, PointAction.COMMENT, post_id, amount)

"""
Database abstraction: record types, the client interface and an in-memory
implementation for development and tests.

The SQLAlchemy implementation lives in `sevadar.db_postgres`.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Protocol

from shared.types import PointAction, RenderStatus


@dataclass
class ProfileRecord:
    id: str
    full_name: str = ""
    village: str = ""
    designation: str = ""
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    points: int = 0
    is_admin: bool = False
    setup_complete: bool = False
    last_poster_credit_day: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "village": self.village,
            "designation": self.designation,
            "avatar_url": self.avatar_url,
            "phone": self.phone,
            "points": self.points,
            "is_admin": self.is_admin,
            "setup_complete": self.setup_complete,
            "last_poster_credit_day": self.last_poster_credit_day,
        }


@dataclass
class PollRecord:
    id: str
    question: str
    options: List[str]
    votes: List[int]
    is_active: bool = True
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class QuizRecord:
    id: str
    date: str  # YYYY-MM-DD
    question: str
    options: List[str]
    correct_index: int
    points: int = 5


@dataclass
class QuizSubmissionRecord:
    quiz_id: str
    user_id: str
    selected_index: int
    is_correct: bool


@dataclass
class FeedPostRecord:
    id: str
    type: str  # "image" | "video"
    title: str
    description: str = ""
    url: str = ""
    images: List[str] = field(default_factory=list)
    likes: int = 0
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class CommentRecord:
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class MessageRecord:
    id: str
    user_id: str
    content: str
    status: str = "new"
    admin_reply: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class RenderJobRecord:
    job_id: str
    user_id: str
    template_id: str
    params: dict
    status: RenderStatus = RenderStatus.WAITING
    stage: str = "WAITING"
    output_path: Optional[str] = None
    error: Optional[str] = None
    locked_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "user_id": self.user_id,
            "template_id": self.template_id,
            "status": self.status.name,
            "stage": self.stage,
            "output_path": self.output_path,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class SubmissionOutcome:
    """Result of a write guarded by a per-user uniqueness constraint."""

    created: bool
    selected_index: Optional[int] = None
    is_correct: Optional[bool] = None
    points_awarded: int = 0
    points_total: int = 0


class DbClient(Protocol):
    """Interface for database access."""

    # Profiles
    def upsert_profile(self, profile: ProfileRecord) -> ProfileRecord:
        ...

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        ...

    def update_profile(self, user_id: str, **fields) -> Optional[ProfileRecord]:
        ...

    def list_profiles(
        self, search: str | None = None, include_admins: bool = False
    ) -> list[ProfileRecord]:
        ...

    def top_profiles(self, limit: int = 100) -> list[ProfileRecord]:
        ...

    def count_distinct_points_above(self, points: int) -> int:
        ...

    # Point ledger
    def record_award(
        self, user_id: str, action: PointAction, scope_key: str, amount: int
    ) -> Optional[int]:
        ...

    def has_award(self, user_id: str, action: PointAction, scope_key: str) -> bool:
        ...

    # Polls
    def create_poll(self, question: str, options: list[str]) -> PollRecord:
        ...

    def get_poll(self, poll_id: str) -> Optional[PollRecord]:
        ...

    def latest_active_poll(self) -> Optional[PollRecord]:
        ...

    def list_polls(self) -> list[PollRecord]:
        ...

    def delete_poll(self, poll_id: str) -> bool:
        ...

    def get_poll_choice(self, poll_id: str, user_id: str) -> Optional[int]:
        ...

    def submit_vote(
        self, poll_id: str, user_id: str, option_index: int, points: int
    ) -> SubmissionOutcome:
        ...

    # Quizzes
    def upsert_quiz(self, quiz: QuizRecord) -> QuizRecord:
        ...

    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        ...

    def get_quiz_for_date(self, day: str) -> Optional[QuizRecord]:
        ...

    def list_quizzes_from(self, day: str) -> list[QuizRecord]:
        ...

    def delete_quiz(self, quiz_id: str) -> bool:
        ...

    def get_quiz_submission(
        self, quiz_id: str, user_id: str
    ) -> Optional[QuizSubmissionRecord]:
        ...

    def submit_quiz_answer(
        self,
        quiz_id: str,
        user_id: str,
        selected_index: int,
        is_correct: bool,
        points: int,
    ) -> SubmissionOutcome:
        ...

    # Feed
    def create_feed_post(self, post: FeedPostRecord) -> FeedPostRecord:
        ...

    def get_feed_post(self, post_id: str) -> Optional[FeedPostRecord]:
        ...

    def list_feed_posts(self) -> list[FeedPostRecord]:
        ...

    def delete_feed_post(self, post_id: str) -> bool:
        ...

    def has_liked(self, post_id: str, user_id: str) -> bool:
        ...

    def like_post(self, post_id: str, user_id: str, points: int) -> SubmissionOutcome:
        ...

    def add_comment(self, post_id: str, user_id: str, content: str) -> CommentRecord:
        ...

    def list_comments(self, post_id: str) -> list[CommentRecord]:
        ...

    # Suggestions
    def create_message(self, user_id: str, content: str) -> MessageRecord:
        ...

    def list_messages(self) -> list[MessageRecord]:
        ...

    def update_message(
        self, message_id: str, *, status: str, admin_reply: str | None = None
    ) -> Optional[MessageRecord]:
        ...

    def delete_message(self, message_id: str) -> bool:
        ...

    # Push tokens
    def save_push_token(self, token: str, user_id: str | None) -> None:
        ...

    def list_push_tokens(self) -> list[str]:
        ...

    def delete_push_tokens(self, tokens: list[str]) -> int:
        ...

    # Render jobs
    def create_render_job(
        self, user_id: str, template_id: str, params: dict
    ) -> RenderJobRecord:
        ...

    def get_render_job(self, job_id: str) -> Optional[RenderJobRecord]:
        ...

    def claim_render_job(self, job_id: str) -> Optional[RenderJobRecord]:
        ...

    def claim_next_waiting_render_job(self) -> Optional[RenderJobRecord]:
        ...

    def update_render_job(
        self,
        job_id: str,
        *,
        status: Optional[RenderStatus] = None,
        stage: Optional[str] = None,
        output_path: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        ...

    def requeue_stale_render_jobs(self, lock_timeout_seconds: float = 600) -> int:
        ...


def _matches_search(profile: ProfileRecord, search: str) -> bool:
    needle = search.lower()
    return (
        needle in (profile.full_name or "").lower()
        or needle in (profile.phone or "")
        or needle in (profile.village or "").lower()
    )


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.profiles: Dict[str, ProfileRecord] = {}
        self.ledger: Dict[tuple[str, str, str], int] = {}
        self.polls: Dict[str, PollRecord] = {}
        self.poll_submissions: Dict[tuple[str, str], int] = {}
        self.quizzes: Dict[str, QuizRecord] = {}
        self.quiz_submissions: Dict[tuple[str, str], QuizSubmissionRecord] = {}
        self.feed_posts: Dict[str, FeedPostRecord] = {}
        self.feed_likes: set[tuple[str, str]] = set()
        self.comments: List[CommentRecord] = []
        self.messages: Dict[str, MessageRecord] = {}
        self.push_tokens: Dict[str, Optional[str]] = {}
        self.render_jobs: Dict[str, RenderJobRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.__init__()

    # Profiles

    def upsert_profile(self, profile: ProfileRecord) -> ProfileRecord:
        self.profiles[profile.id] = replace(profile)
        return replace(profile)

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        profile = self.profiles.get(user_id)
        return replace(profile) if profile else None

    def update_profile(self, user_id: str, **fields) -> Optional[ProfileRecord]:
        profile = self.profiles.get(user_id)
        if not profile:
            return None
        for key, value in fields.items():
            if not hasattr(profile, key):
                raise AttributeError(f"Unknown profile field: {key}")
            setattr(profile, key, value)
        return replace(profile)

    def list_profiles(
        self, search: str | None = None, include_admins: bool = False
    ) -> list[ProfileRecord]:
        items = [
            replace(p)
            for p in self.profiles.values()
            if (include_admins or not p.is_admin)
            and (not search or _matches_search(p, search))
        ]
        items.sort(key=lambda p: p.points, reverse=True)
        return items

    def top_profiles(self, limit: int = 100) -> list[ProfileRecord]:
        return self.list_profiles()[:limit]

    def count_distinct_points_above(self, points: int) -> int:
        return len(
            {p.points for p in self.profiles.values() if not p.is_admin and p.points > points}
        )

    # Point ledger

    def _award(self, user_id: str, action: PointAction, scope_key: str, amount: int) -> Optional[int]:
        profile = self.profiles.get(user_id)
        if not profile:
            raise LookupError(f"Profile {user_id} not found")
        key = (user_id, action.value, scope_key)
        if key in self.ledger:
            return None
        self.ledger[key] = amount
        profile.points += amount
        return profile.points

    def record_award(
        self, user_id: str, action: PointAction, scope_key: str, amount: int
    ) -> Optional[int]:
        return self._award(user_id, action, scope_key, amount)

    def has_award(self, user_id: str, action: PointAction, scope_key: str) -> bool:
        return (user_id, action.value, scope_key) in self.ledger

    def _points_of(self, user_id: str) -> int:
        profile = self.profiles.get(user_id)
        return profile.points if profile else 0

    # Polls

    def create_poll(self, question: str, options: list[str]) -> PollRecord:
        poll = PollRecord(
            id=uuid.uuid4().hex,
            question=question,
            options=list(options),
            votes=[0] * len(options),
        )
        self.polls[poll.id] = poll
        return replace(poll, votes=list(poll.votes))

    def get_poll(self, poll_id: str) -> Optional[PollRecord]:
        poll = self.polls.get(poll_id)
        return replace(poll, votes=list(poll.votes)) if poll else None

    def latest_active_poll(self) -> Optional[PollRecord]:
        active = [p for p in self.polls.values() if p.is_active]
        if not active:
            return None
        latest = max(active, key=lambda p: p.created_at)
        return replace(latest, votes=list(latest.votes))

    def list_polls(self) -> list[PollRecord]:
        return sorted(
            (replace(p, votes=list(p.votes)) for p in self.polls.values()),
            key=lambda p: p.created_at,
            reverse=True,
        )

    def delete_poll(self, poll_id: str) -> bool:
        return self.polls.pop(poll_id, None) is not None

    def get_poll_choice(self, poll_id: str, user_id: str) -> Optional[int]:
        return self.poll_submissions.get((poll_id, user_id))

    def submit_vote(
        self, poll_id: str, user_id: str, option_index: int, points: int
    ) -> SubmissionOutcome:
        poll = self.polls.get(poll_id)
        if not poll:
            raise LookupError(f"Poll {poll_id} not found")
        key = (poll_id, user_id)
        if key in self.poll_submissions:
            return SubmissionOutcome(
                created=False,
                selected_index=self.poll_submissions[key],
                points_total=self._points_of(user_id),
            )
        self.poll_submissions[key] = option_index
        poll.votes[option_index] += 1
        total = self._award(user_id, PointAction.VOTE, poll_id, points)
        return SubmissionOutcome(
            created=True,
            selected_index=option_index,
            points_awarded=points if total is not None else 0,
            points_total=self._points_of(user_id),
        )

    # Quizzes

    def upsert_quiz(self, quiz: QuizRecord) -> QuizRecord:
        existing = next((q for q in self.quizzes.values() if q.date == quiz.date), None)
        if existing:
            quiz = replace(quiz, id=existing.id)
        self.quizzes[quiz.id] = replace(quiz)
        return replace(quiz)

    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        quiz = self.quizzes.get(quiz_id)
        return replace(quiz) if quiz else None

    def get_quiz_for_date(self, day: str) -> Optional[QuizRecord]:
        quiz = next((q for q in self.quizzes.values() if q.date == day), None)
        return replace(quiz) if quiz else None

    def list_quizzes_from(self, day: str) -> list[QuizRecord]:
        return sorted(
            (replace(q) for q in self.quizzes.values() if q.date >= day),
            key=lambda q: q.date,
        )

    def delete_quiz(self, quiz_id: str) -> bool:
        return self.quizzes.pop(quiz_id, None) is not None

    def get_quiz_submission(
        self, quiz_id: str, user_id: str
    ) -> Optional[QuizSubmissionRecord]:
        submission = self.quiz_submissions.get((quiz_id, user_id))
        return replace(submission) if submission else None

    def submit_quiz_answer(
        self,
        quiz_id: str,
        user_id: str,
        selected_index: int,
        is_correct: bool,
        points: int,
    ) -> SubmissionOutcome:
        if quiz_id not in self.quizzes:
            raise LookupError(f"Quiz {quiz_id} not found")
        key = (quiz_id, user_id)
        existing = self.quiz_submissions.get(key)
        if existing:
            return SubmissionOutcome(
                created=False,
                selected_index=existing.selected_index,
                is_correct=existing.is_correct,
                points_total=self._points_of(user_id),
            )
        self.quiz_submissions[key] = QuizSubmissionRecord(
            quiz_id=quiz_id,
            user_id=user_id,
            selected_index=selected_index,
            is_correct=is_correct,
        )
        awarded = 0
        if is_correct and points:
            if self._award(user_id, PointAction.QUIZ_CORRECT, quiz_id, points) is not None:
                awarded = points
        return SubmissionOutcome(
            created=True,
            selected_index=selected_index,
            is_correct=is_correct,
            points_awarded=awarded,
            points_total=self._points_of(user_id),
        )

    # Feed

    def create_feed_post(self, post: FeedPostRecord) -> FeedPostRecord:
        self.feed_posts[post.id] = replace(post, images=list(post.images))
        return replace(post)

    def get_feed_post(self, post_id: str) -> Optional[FeedPostRecord]:
        post = self.feed_posts.get(post_id)
        return replace(post, images=list(post.images)) if post else None

    def list_feed_posts(self) -> list[FeedPostRecord]:
        return sorted(
            (replace(p, images=list(p.images)) for p in self.feed_posts.values()),
            key=lambda p: p.created_at,
            reverse=True,
        )

    def delete_feed_post(self, post_id: str) -> bool:
        return self.feed_posts.pop(post_id, None) is not None

    def has_liked(self, post_id: str, user_id: str) -> bool:
        return (post_id, user_id) in self.feed_likes

    def like_post(self, post_id: str, user_id: str, points: int) -> SubmissionOutcome:
        post = self.feed_posts.get(post_id)
        if not post:
            raise LookupError(f"Feed post {post_id} not found")
        if (post_id, user_id) in self.feed_likes:
            return SubmissionOutcome(created=False, points_total=self._points_of(user_id))
        self.feed_likes.add((post_id, user_id))
        post.likes += 1
        awarded = 0
        if points and self._award(user_id, PointAction.LIKE, post_id, points) is not None:
            awarded = points
        return SubmissionOutcome(
            created=True, points_awarded=awarded, points_total=self._points_of(user_id)
        )

    def add_comment(self, post_id: str, user_id: str, content: str) -> CommentRecord:
        if post_id not in self.feed_posts:
            raise LookupError(f"Feed post {post_id} not found")
        comment = CommentRecord(
            id=uuid.uuid4().hex, post_id=post_id, user_id=user_id, content=content
        )
        self.comments.append(comment)
        return replace(comment)

    def list_comments(self, post_id: str) -> list[CommentRecord]:
        return sorted(
            (replace(c) for c in self.comments if c.post_id == post_id),
            key=lambda c: c.created_at,
            reverse=True,
        )

    # Suggestions

    def create_message(self, user_id: str, content: str) -> MessageRecord:
        message = MessageRecord(id=uuid.uuid4().hex, user_id=user_id, content=content)
        self.messages[message.id] = message
        return replace(message)

    def list_messages(self) -> list[MessageRecord]:
        return sorted(
            (replace(m) for m in self.messages.values()),
            key=lambda m: m.created_at,
            reverse=True,
        )

    def update_message(
        self, message_id: str, *, status: str, admin_reply: str | None = None
    ) -> Optional[MessageRecord]:
        message = self.messages.get(message_id)
        if not message:
            return None
        message.status = status
        if admin_reply is not None:
            message.admin_reply = admin_reply
        return replace(message)

    def delete_message(self, message_id: str) -> bool:
        return self.messages.pop(message_id, None) is not None

    # Push tokens

    def save_push_token(self, token: str, user_id: str | None) -> None:
        self.push_tokens[token] = user_id

    def list_push_tokens(self) -> list[str]:
        return list(self.push_tokens.keys())

    def delete_push_tokens(self, tokens: list[str]) -> int:
        removed = 0
        for token in tokens:
            if self.push_tokens.pop(token, ...) is not ...:
                removed += 1
        return removed

    # Render jobs

    def create_render_job(
        self, user_id: str, template_id: str, params: dict
    ) -> RenderJobRecord:
        job = RenderJobRecord(
            job_id=uuid.uuid4().hex,
            user_id=user_id,
            template_id=template_id,
            params=dict(params),
        )
        self.render_jobs[job.job_id] = job
        return replace(job)

    def get_render_job(self, job_id: str) -> Optional[RenderJobRecord]:
        job = self.render_jobs.get(job_id)
        return replace(job) if job else None

    def _claim(self, job: RenderJobRecord) -> RenderJobRecord:
        now = time.time()
        job.status = RenderStatus.RENDERING
        job.stage = "CLAIMED"
        job.locked_at = now
        job.updated_at = now
        return replace(job)

    def claim_render_job(self, job_id: str) -> Optional[RenderJobRecord]:
        job = self.render_jobs.get(job_id)
        if not job or job.status != RenderStatus.WAITING:
            return None
        return self._claim(job)

    def claim_next_waiting_render_job(self) -> Optional[RenderJobRecord]:
        waiting = [j for j in self.render_jobs.values() if j.status == RenderStatus.WAITING]
        if not waiting:
            return None
        return self._claim(min(waiting, key=lambda j: j.created_at))

    def update_render_job(
        self,
        job_id: str,
        *,
        status: Optional[RenderStatus] = None,
        stage: Optional[str] = None,
        output_path: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        job = self.render_jobs.get(job_id)
        if not job:
            return
        if status:
            job.status = status
        if stage:
            job.stage = stage
        if output_path is not None:
            job.output_path = output_path
        if error is not None:
            job.error = error
        job.updated_at = time.time()

    def requeue_stale_render_jobs(self, lock_timeout_seconds: float = 600) -> int:
        now = time.time()
        requeued = 0
        for job in self.render_jobs.values():
            if (
                job.status == RenderStatus.RENDERING
                and job.locked_at
                and now - job.locked_at > lock_timeout_seconds
            ):
                job.status = RenderStatus.WAITING
                job.stage = "WAITING"
                job.locked_at = None
                job.updated_at = now
                requeued += 1
        return requeued

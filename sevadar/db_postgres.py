"""
SQLAlchemy-backed database client.

Every points award writes a `point_ledger` row whose (user_id, action,
scope_key) key is unique; the row, the submission it belongs to and the
profile total are committed together, so a duplicate attempt rolls back
as a whole and changes nothing.
"""

from __future__ import annotations

import time
import uuid
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    distinct,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from sevadar.db import (
    CommentRecord,
    FeedPostRecord,
    MessageRecord,
    PollRecord,
    ProfileRecord,
    QuizRecord,
    QuizSubmissionRecord,
    RenderJobRecord,
    SubmissionOutcome,
)
from shared.types import PointAction, RenderStatus

Base = declarative_base()

PROFILE_FIELDS = (
    "full_name",
    "village",
    "designation",
    "avatar_url",
    "phone",
    "points",
    "is_admin",
    "setup_complete",
    "last_poster_credit_day",
)


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Profiles

    def _to_profile_record(self, row: "ProfileRow") -> ProfileRecord:
        return ProfileRecord(
            id=row.id,
            full_name=row.full_name or "",
            village=row.village or "",
            designation=row.designation or "",
            avatar_url=row.avatar_url,
            phone=row.phone,
            points=row.points or 0,
            is_admin=bool(row.is_admin),
            setup_complete=bool(row.setup_complete),
            last_poster_credit_day=row.last_poster_credit_day,
            created_at=row.created_at,
        )

    def upsert_profile(self, profile: ProfileRecord) -> ProfileRecord:
        with self.Session() as session:
            row = session.get(ProfileRow, profile.id)
            if not row:
                row = ProfileRow(id=profile.id, created_at=profile.created_at)
                session.add(row)
            for name in PROFILE_FIELDS:
                setattr(row, name, getattr(profile, name))
            session.commit()
            session.refresh(row)
            return self._to_profile_record(row)

    def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                return None
            return self._to_profile_record(row)

    def update_profile(self, user_id: str, **fields) -> Optional[ProfileRecord]:
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise AttributeError(f"Unknown profile field(s): {sorted(unknown)}")
        with self.Session() as session:
            row = session.get(ProfileRow, user_id)
            if not row:
                return None
            for name, value in fields.items():
                setattr(row, name, value)
            session.commit()
            session.refresh(row)
            return self._to_profile_record(row)

    def list_profiles(
        self, search: str | None = None, include_admins: bool = False
    ) -> list[ProfileRecord]:
        with self.Session() as session:
            stmt = select(ProfileRow)
            if not include_admins:
                stmt = stmt.where(ProfileRow.is_admin.is_(False))
            if search:
                pattern = f"%{search}%"
                stmt = stmt.where(
                    or_(
                        ProfileRow.full_name.ilike(pattern),
                        ProfileRow.phone.like(pattern),
                        ProfileRow.village.ilike(pattern),
                    )
                )
            stmt = stmt.order_by(ProfileRow.points.desc(), ProfileRow.created_at.asc())
            rows = session.execute(stmt).scalars().all()
            return [self._to_profile_record(row) for row in rows]

    def top_profiles(self, limit: int = 100) -> list[ProfileRecord]:
        with self.Session() as session:
            stmt = (
                select(ProfileRow)
                .where(ProfileRow.is_admin.is_(False))
                .order_by(ProfileRow.points.desc(), ProfileRow.created_at.asc())
                .limit(limit)
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_profile_record(row) for row in rows]

    def count_distinct_points_above(self, points: int) -> int:
        with self.Session() as session:
            stmt = select(func.count(distinct(ProfileRow.points))).where(
                ProfileRow.is_admin.is_(False), ProfileRow.points > points
            )
            return session.execute(stmt).scalar_one() or 0

    # Point ledger

    def _add_award(
        self,
        session: Session,
        user_id: str,
        action: PointAction,
        scope_key: str,
        amount: int,
    ) -> None:
        session.add(
            PointLedgerRow(
                id=uuid.uuid4().hex,
                user_id=user_id,
                action=action.value,
                scope_key=scope_key,
                amount=amount,
                created_at=time.time(),
            )
        )
        session.execute(
            update(ProfileRow)
            .where(ProfileRow.id == user_id)
            .values(points=ProfileRow.points + amount)
        )

    def _points_of(self, session: Session, user_id: str) -> int:
        points = session.execute(
            select(ProfileRow.points).where(ProfileRow.id == user_id)
        ).scalar_one_or_none()
        return points or 0

    def _require_profile(self, session: Session, user_id: str) -> None:
        if session.get(ProfileRow, user_id) is None:
            raise LookupError(f"Profile {user_id} not found")

    def record_award(
        self, user_id: str, action: PointAction, scope_key: str, amount: int
    ) -> Optional[int]:
        with self.Session() as session:
            self._require_profile(session, user_id)
            try:
                self._add_award(session, user_id, action, scope_key, amount)
                session.commit()
            except IntegrityError:
                session.rollback()
                return None
            return self._points_of(session, user_id)

    def has_award(self, user_id: str, action: PointAction, scope_key: str) -> bool:
        with self.Session() as session:
            stmt = select(PointLedgerRow.id).where(
                PointLedgerRow.user_id == user_id,
                PointLedgerRow.action == action.value,
                PointLedgerRow.scope_key == scope_key,
            )
            return session.execute(stmt).first() is not None

    # Polls

    def _to_poll_record(self, row: "PollRow") -> PollRecord:
        return PollRecord(
            id=row.id,
            question=row.question,
            options=list(row.options or []),
            votes=list(row.votes or []),
            is_active=bool(row.is_active),
            created_at=row.created_at,
        )

    def create_poll(self, question: str, options: list[str]) -> PollRecord:
        with self.Session() as session:
            row = PollRow(
                id=uuid.uuid4().hex,
                question=question,
                options=list(options),
                votes=[0] * len(options),
                is_active=True,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_poll_record(row)

    def get_poll(self, poll_id: str) -> Optional[PollRecord]:
        with self.Session() as session:
            row = session.get(PollRow, poll_id)
            return self._to_poll_record(row) if row else None

    def latest_active_poll(self) -> Optional[PollRecord]:
        with self.Session() as session:
            stmt = (
                select(PollRow)
                .where(PollRow.is_active.is_(True))
                .order_by(PollRow.created_at.desc())
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_poll_record(row) if row else None

    def list_polls(self) -> list[PollRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(PollRow).order_by(PollRow.created_at.desc())
            ).scalars().all()
            return [self._to_poll_record(row) for row in rows]

    def delete_poll(self, poll_id: str) -> bool:
        with self.Session() as session:
            session.execute(delete(PollSubmissionRow).where(PollSubmissionRow.poll_id == poll_id))
            result = session.execute(delete(PollRow).where(PollRow.id == poll_id))
            session.commit()
            return bool(result.rowcount)

    def _poll_choice(self, session: Session, poll_id: str, user_id: str) -> Optional[int]:
        stmt = select(PollSubmissionRow.option_index).where(
            PollSubmissionRow.poll_id == poll_id,
            PollSubmissionRow.user_id == user_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    def get_poll_choice(self, poll_id: str, user_id: str) -> Optional[int]:
        with self.Session() as session:
            return self._poll_choice(session, poll_id, user_id)

    def submit_vote(
        self, poll_id: str, user_id: str, option_index: int, points: int
    ) -> SubmissionOutcome:
        with self.Session() as session:
            self._require_profile(session, user_id)
            poll = session.execute(
                select(PollRow).where(PollRow.id == poll_id).with_for_update()
            ).scalar_one_or_none()
            if not poll:
                raise LookupError(f"Poll {poll_id} not found")
            try:
                session.add(
                    PollSubmissionRow(
                        id=uuid.uuid4().hex,
                        poll_id=poll_id,
                        user_id=user_id,
                        option_index=option_index,
                        created_at=time.time(),
                    )
                )
                votes = list(poll.votes or [])
                votes[option_index] += 1
                # JSON columns only persist on reassignment.
                poll.votes = votes
                if points:
                    self._add_award(session, user_id, PointAction.VOTE, poll_id, points)
                session.commit()
            except IntegrityError:
                session.rollback()
                return SubmissionOutcome(
                    created=False,
                    selected_index=self._poll_choice(session, poll_id, user_id),
                    points_total=self._points_of(session, user_id),
                )
            return SubmissionOutcome(
                created=True,
                selected_index=option_index,
                points_awarded=points,
                points_total=self._points_of(session, user_id),
            )

    # Quizzes

    def _to_quiz_record(self, row: "QuizRow") -> QuizRecord:
        return QuizRecord(
            id=row.id,
            date=row.date,
            question=row.question,
            options=list(row.options or []),
            correct_index=row.correct_index,
            points=row.points,
        )

    def upsert_quiz(self, quiz: QuizRecord) -> QuizRecord:
        with self.Session() as session:
            row = session.execute(
                select(QuizRow).where(QuizRow.date == quiz.date)
            ).scalar_one_or_none()
            if not row:
                row = QuizRow(id=quiz.id, date=quiz.date)
                session.add(row)
            row.question = quiz.question
            row.options = list(quiz.options)
            row.correct_index = quiz.correct_index
            row.points = quiz.points
            session.commit()
            session.refresh(row)
            return self._to_quiz_record(row)

    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        with self.Session() as session:
            row = session.get(QuizRow, quiz_id)
            return self._to_quiz_record(row) if row else None

    def get_quiz_for_date(self, day: str) -> Optional[QuizRecord]:
        with self.Session() as session:
            row = session.execute(
                select(QuizRow).where(QuizRow.date == day)
            ).scalar_one_or_none()
            return self._to_quiz_record(row) if row else None

    def list_quizzes_from(self, day: str) -> list[QuizRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(QuizRow).where(QuizRow.date >= day).order_by(QuizRow.date.asc())
            ).scalars().all()
            return [self._to_quiz_record(row) for row in rows]

    def delete_quiz(self, quiz_id: str) -> bool:
        with self.Session() as session:
            session.execute(delete(QuizSubmissionRow).where(QuizSubmissionRow.quiz_id == quiz_id))
            result = session.execute(delete(QuizRow).where(QuizRow.id == quiz_id))
            session.commit()
            return bool(result.rowcount)

    def _quiz_submission(
        self, session: Session, quiz_id: str, user_id: str
    ) -> Optional[QuizSubmissionRecord]:
        row = session.execute(
            select(QuizSubmissionRow).where(
                QuizSubmissionRow.quiz_id == quiz_id,
                QuizSubmissionRow.user_id == user_id,
            )
        ).scalar_one_or_none()
        if not row:
            return None
        return QuizSubmissionRecord(
            quiz_id=row.quiz_id,
            user_id=row.user_id,
            selected_index=row.selected_index,
            is_correct=bool(row.is_correct),
        )

    def get_quiz_submission(
        self, quiz_id: str, user_id: str
    ) -> Optional[QuizSubmissionRecord]:
        with self.Session() as session:
            return self._quiz_submission(session, quiz_id, user_id)

    def submit_quiz_answer(
        self,
        quiz_id: str,
        user_id: str,
        selected_index: int,
        is_correct: bool,
        points: int,
    ) -> SubmissionOutcome:
        with self.Session() as session:
            self._require_profile(session, user_id)
            if session.get(QuizRow, quiz_id) is None:
                raise LookupError(f"Quiz {quiz_id} not found")
            awarded = points if is_correct else 0
            try:
                session.add(
                    QuizSubmissionRow(
                        id=uuid.uuid4().hex,
                        quiz_id=quiz_id,
                        user_id=user_id,
                        selected_index=selected_index,
                        is_correct=is_correct,
                        created_at=time.time(),
                    )
                )
                if awarded:
                    self._add_award(
                        session, user_id, PointAction.QUIZ_CORRECT, quiz_id, awarded
                    )
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = self._quiz_submission(session, quiz_id, user_id)
                return SubmissionOutcome(
                    created=False,
                    selected_index=existing.selected_index if existing else None,
                    is_correct=existing.is_correct if existing else None,
                    points_total=self._points_of(session, user_id),
                )
            return SubmissionOutcome(
                created=True,
                selected_index=selected_index,
                is_correct=is_correct,
                points_awarded=awarded,
                points_total=self._points_of(session, user_id),
            )

    # Feed

    def _to_feed_record(self, row: "FeedPostRow") -> FeedPostRecord:
        return FeedPostRecord(
            id=row.id,
            type=row.type,
            title=row.title,
            description=row.description or "",
            url=row.url or "",
            images=list(row.images or []),
            likes=row.likes or 0,
            created_at=row.created_at,
        )

    def create_feed_post(self, post: FeedPostRecord) -> FeedPostRecord:
        with self.Session() as session:
            row = FeedPostRow(
                id=post.id,
                type=post.type,
                title=post.title,
                description=post.description,
                url=post.url,
                images=list(post.images),
                likes=post.likes,
                created_at=post.created_at,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_feed_record(row)

    def get_feed_post(self, post_id: str) -> Optional[FeedPostRecord]:
        with self.Session() as session:
            row = session.get(FeedPostRow, post_id)
            return self._to_feed_record(row) if row else None

    def list_feed_posts(self) -> list[FeedPostRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(FeedPostRow).order_by(FeedPostRow.created_at.desc())
            ).scalars().all()
            return [self._to_feed_record(row) for row in rows]

    def delete_feed_post(self, post_id: str) -> bool:
        with self.Session() as session:
            session.execute(delete(FeedLikeRow).where(FeedLikeRow.post_id == post_id))
            session.execute(delete(CommentRow).where(CommentRow.post_id == post_id))
            result = session.execute(delete(FeedPostRow).where(FeedPostRow.id == post_id))
            session.commit()
            return bool(result.rowcount)

    def has_liked(self, post_id: str, user_id: str) -> bool:
        with self.Session() as session:
            stmt = select(FeedLikeRow.id).where(
                FeedLikeRow.post_id == post_id, FeedLikeRow.user_id == user_id
            )
            return session.execute(stmt).first() is not None

    def like_post(self, post_id: str, user_id: str, points: int) -> SubmissionOutcome:
        with self.Session() as session:
            self._require_profile(session, user_id)
            if session.get(FeedPostRow, post_id) is None:
                raise LookupError(f"Feed post {post_id} not found")
            try:
                session.add(
                    FeedLikeRow(
                        id=uuid.uuid4().hex,
                        post_id=post_id,
                        user_id=user_id,
                        created_at=time.time(),
                    )
                )
                session.execute(
                    update(FeedPostRow)
                    .where(FeedPostRow.id == post_id)
                    .values(likes=FeedPostRow.likes + 1)
                )
                if points:
                    self._add_award(session, user_id, PointAction.LIKE, post_id, points)
                session.commit()
            except IntegrityError:
                session.rollback()
                return SubmissionOutcome(
                    created=False, points_total=self._points_of(session, user_id)
                )
            return SubmissionOutcome(
                created=True,
                points_awarded=points,
                points_total=self._points_of(session, user_id),
            )

    def add_comment(self, post_id: str, user_id: str, content: str) -> CommentRecord:
        with self.Session() as session:
            if session.get(FeedPostRow, post_id) is None:
                raise LookupError(f"Feed post {post_id} not found")
            row = CommentRow(
                id=uuid.uuid4().hex,
                post_id=post_id,
                user_id=user_id,
                content=content,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return CommentRecord(
                id=row.id,
                post_id=row.post_id,
                user_id=row.user_id,
                content=row.content,
                created_at=row.created_at,
            )

    def list_comments(self, post_id: str) -> list[CommentRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(CommentRow)
                .where(CommentRow.post_id == post_id)
                .order_by(CommentRow.created_at.desc())
            ).scalars().all()
            return [
                CommentRecord(
                    id=row.id,
                    post_id=row.post_id,
                    user_id=row.user_id,
                    content=row.content,
                    created_at=row.created_at,
                )
                for row in rows
            ]

    # Suggestions

    def _to_message_record(self, row: "MessageRow") -> MessageRecord:
        return MessageRecord(
            id=row.id,
            user_id=row.user_id,
            content=row.content,
            status=row.status,
            admin_reply=row.admin_reply,
            created_at=row.created_at,
        )

    def create_message(self, user_id: str, content: str) -> MessageRecord:
        with self.Session() as session:
            row = MessageRow(
                id=uuid.uuid4().hex,
                user_id=user_id,
                content=content,
                status="new",
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_message_record(row)

    def list_messages(self) -> list[MessageRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(MessageRow).order_by(MessageRow.created_at.desc())
            ).scalars().all()
            return [self._to_message_record(row) for row in rows]

    def update_message(
        self, message_id: str, *, status: str, admin_reply: str | None = None
    ) -> Optional[MessageRecord]:
        with self.Session() as session:
            row = session.get(MessageRow, message_id)
            if not row:
                return None
            row.status = status
            if admin_reply is not None:
                row.admin_reply = admin_reply
            session.commit()
            return self._to_message_record(row)

    def delete_message(self, message_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(delete(MessageRow).where(MessageRow.id == message_id))
            session.commit()
            return bool(result.rowcount)

    # Push tokens

    def save_push_token(self, token: str, user_id: str | None) -> None:
        with self.Session() as session:
            row = session.get(PushTokenRow, token)
            if not row:
                row = PushTokenRow(token=token, created_at=time.time())
                session.add(row)
            row.user_id = user_id
            session.commit()

    def list_push_tokens(self) -> list[str]:
        with self.Session() as session:
            return list(session.execute(select(PushTokenRow.token)).scalars().all())

    def delete_push_tokens(self, tokens: list[str]) -> int:
        if not tokens:
            return 0
        with self.Session() as session:
            result = session.execute(delete(PushTokenRow).where(PushTokenRow.token.in_(tokens)))
            session.commit()
            return result.rowcount or 0

    # Render jobs

    def _to_job_record(self, job: "RenderJobRow") -> RenderJobRecord:
        return RenderJobRecord(
            job_id=job.job_id,
            user_id=job.user_id,
            template_id=job.template_id,
            params=dict(job.params or {}),
            status=RenderStatus(job.status),
            stage=job.stage,
            output_path=job.output_path,
            error=job.error,
            locked_at=job.locked_at,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

    def create_render_job(
        self, user_id: str, template_id: str, params: dict
    ) -> RenderJobRecord:
        now = time.time()
        with self.Session() as session:
            job = RenderJobRow(
                job_id=uuid.uuid4().hex,
                user_id=user_id,
                template_id=template_id,
                params=dict(params),
                status=RenderStatus.WAITING.value,
                stage="WAITING",
                created_at=now,
                updated_at=now,
            )
            session.add(job)
            session.commit()
            session.refresh(job)
            return self._to_job_record(job)

    def get_render_job(self, job_id: str) -> Optional[RenderJobRecord]:
        with self.Session() as session:
            job = session.get(RenderJobRow, job_id)
            if not job:
                return None
            return self._to_job_record(job)

    def _claim(self, session: Session, job: "RenderJobRow") -> RenderJobRecord:
        now = time.time()
        job.status = RenderStatus.RENDERING.value
        job.stage = "CLAIMED"
        job.locked_at = now
        job.updated_at = now
        session.commit()
        session.refresh(job)
        return self._to_job_record(job)

    def claim_render_job(self, job_id: str) -> Optional[RenderJobRecord]:
        with self.Session() as session:
            stmt = (
                select(RenderJobRow)
                .where(
                    RenderJobRow.job_id == job_id,
                    RenderJobRow.status == RenderStatus.WAITING.value,
                )
                .with_for_update(skip_locked=True)
            )
            job = session.execute(stmt).scalar_one_or_none()
            if not job:
                return None
            return self._claim(session, job)

    def claim_next_waiting_render_job(self) -> Optional[RenderJobRecord]:
        with self.Session() as session:
            stmt = (
                select(RenderJobRow)
                .where(RenderJobRow.status == RenderStatus.WAITING.value)
                .order_by(RenderJobRow.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            job = session.execute(stmt).scalar_one_or_none()
            if not job:
                return None
            return self._claim(session, job)

    def update_render_job(
        self,
        job_id: str,
        *,
        status: Optional[RenderStatus] = None,
        stage: Optional[str] = None,
        output_path: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        with self.Session() as session:
            job = session.get(RenderJobRow, job_id)
            if not job:
                return
            if status:
                job.status = status.value
            if stage:
                job.stage = stage
            if output_path is not None:
                job.output_path = output_path
            if error is not None:
                job.error = error
            job.updated_at = time.time()
            session.commit()

    def requeue_stale_render_jobs(self, lock_timeout_seconds: float = 600) -> int:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            result = session.execute(
                update(RenderJobRow)
                .where(
                    RenderJobRow.status == RenderStatus.RENDERING.value,
                    RenderJobRow.locked_at.is_not(None),
                    RenderJobRow.locked_at < cutoff,
                )
                .values(
                    status=RenderStatus.WAITING.value,
                    stage="WAITING",
                    locked_at=None,
                    updated_at=time.time(),
                )
            )
            session.commit()
            return result.rowcount or 0


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    full_name = Column(String, nullable=True)
    village = Column(String, nullable=True)
    designation = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    phone = Column(String, nullable=True, index=True)
    points = Column(Integer, nullable=False, default=0, index=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    setup_complete = Column(Boolean, nullable=False, default=False)
    last_poster_credit_day = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class PointLedgerRow(Base):
    __tablename__ = "point_ledger"
    __table_args__ = (
        UniqueConstraint("user_id", "action", "scope_key", name="uq_point_ledger_award"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)
    scope_key = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    created_at = Column(Float, nullable=False)


class PollRow(Base):
    __tablename__ = "polls"

    id = Column(String, primary_key=True)
    question = Column(String, nullable=False)
    options = Column(JSON, nullable=False)
    votes = Column(JSON, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Float, nullable=False)


class PollSubmissionRow(Base):
    __tablename__ = "poll_submissions"
    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", name="uq_poll_submission"),
    )

    id = Column(String, primary_key=True)
    poll_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    option_index = Column(Integer, nullable=False)
    created_at = Column(Float, nullable=False)


class QuizRow(Base):
    __tablename__ = "daily_quizzes"

    id = Column(String, primary_key=True)
    date = Column(String, nullable=False, unique=True)
    question = Column(String, nullable=False)
    options = Column(JSON, nullable=False)
    correct_index = Column(Integer, nullable=False)
    points = Column(Integer, nullable=False, default=5)


class QuizSubmissionRow(Base):
    __tablename__ = "quiz_submissions"
    __table_args__ = (
        UniqueConstraint("quiz_id", "user_id", name="uq_quiz_submission"),
    )

    id = Column(String, primary_key=True)
    quiz_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    selected_index = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    created_at = Column(Float, nullable=False)


class FeedPostRow(Base):
    __tablename__ = "feed_posts"

    id = Column(String, primary_key=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    url = Column(String, nullable=True)
    images = Column(JSON, nullable=False)
    likes = Column(Integer, nullable=False, default=0)
    created_at = Column(Float, nullable=False)


class FeedLikeRow(Base):
    __tablename__ = "feed_likes"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_feed_like"),)

    id = Column(String, primary_key=True)
    post_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class CommentRow(Base):
    __tablename__ = "feed_comments"

    id = Column(String, primary_key=True)
    post_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    content = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    content = Column(String, nullable=False)
    status = Column(String, nullable=False, default="new")
    admin_reply = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class PushTokenRow(Base):
    __tablename__ = "push_tokens"

    token = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    created_at = Column(Float, nullable=False)


class RenderJobRow(Base):
    __tablename__ = "render_jobs"

    job_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    template_id = Column(String, nullable=False)
    params = Column(JSON, nullable=False)
    status = Column(String, nullable=False, index=True)
    stage = Column(String, nullable=False, default="WAITING")
    output_path = Column(String, nullable=True)
    error = Column(String, nullable=True)
    locked_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)

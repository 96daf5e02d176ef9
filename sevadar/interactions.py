"""
Per-subject interaction locks for quizzes, polls and feed likes.

Each lock is a small asyncio state machine around one remote call. A
submission is refused while a call for the same subject is in flight and
once the terminal state is reached. A failed call puts the lock back in its
initial state so the user can try again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)


class QuizState(Enum):
    UNANSWERED = "UNANSWERED"
    SUBMITTING = "SUBMITTING"
    LOCKED_CORRECT = "LOCKED_CORRECT"
    LOCKED_INCORRECT = "LOCKED_INCORRECT"


class PollState(Enum):
    UNVOTED = "UNVOTED"
    SUBMITTING = "SUBMITTING"
    LOCKED = "LOCKED"


class LikeState(Enum):
    NOT_LIKED = "NOT_LIKED"
    LIKED = "LIKED"


@dataclass
class QuizReceipt:
    selected_index: int
    is_correct: bool
    correct_index: Optional[int] = None
    already_answered: bool = False
    points_awarded: int = 0


@dataclass
class PollReceipt:
    selected_index: int
    votes: List[int] = field(default_factory=list)
    already_voted: bool = False
    points_awarded: int = 0


class QuizLock:
    """
    Tracks one viewer's progress on one daily quiz.

    `previous` is the viewer's earlier answer, if any, so a returning player
    starts in the locked state. Admins start locked on the correct answer.
    """

    def __init__(
        self,
        quiz_id: str,
        submit: Callable[[int], Awaitable[QuizReceipt]],
        previous: Optional[QuizReceipt] = None,
        is_admin: bool = False,
        correct_index: Optional[int] = None,
    ):
        self.quiz_id = quiz_id
        self._submit = submit
        self.is_admin = is_admin
        self.correct_index = correct_index
        self.selected_index: Optional[int] = None
        self.points_awarded = 0
        self.state = QuizState.UNANSWERED

        if is_admin:
            self.state = QuizState.LOCKED_CORRECT
            self.selected_index = correct_index
        elif previous is not None:
            self._lock(previous)

    @property
    def can_submit(self) -> bool:
        return self.state == QuizState.UNANSWERED and not self.is_admin

    @property
    def is_locked(self) -> bool:
        return self.state in (QuizState.LOCKED_CORRECT, QuizState.LOCKED_INCORRECT)

    def _lock(self, receipt: QuizReceipt) -> None:
        self.selected_index = receipt.selected_index
        if receipt.correct_index is not None:
            self.correct_index = receipt.correct_index
        self.state = (
            QuizState.LOCKED_CORRECT if receipt.is_correct else QuizState.LOCKED_INCORRECT
        )

    async def submit(self, option_index: int) -> bool:
        """
        Sends an answer. Returns False without calling the backend when the
        lock does not accept submissions.

        Raises:
            BaseException: Whatever the remote call raised, cancellation
            included, after the lock has returned to UNANSWERED.
        """
        if not self.can_submit:
            return False

        self.state = QuizState.SUBMITTING
        self.selected_index = option_index
        try:
            receipt = await self._submit(option_index)
        except BaseException:
            # Cancellation also returns the lock to UNANSWERED.
            logger.warning("Quiz %s submission failed", self.quiz_id)
            self.state = QuizState.UNANSWERED
            self.selected_index = None
            raise

        # "Already answered" locks on the first answer, whatever was tapped now.
        self._lock(receipt)
        self.points_awarded = 0 if receipt.already_answered else receipt.points_awarded
        return True


class PollLock:
    """Tracks one viewer's vote on one poll."""

    def __init__(
        self,
        poll_id: str,
        options: List[str],
        submit: Callable[[int], Awaitable[PollReceipt]],
        votes: Optional[List[int]] = None,
        previous_choice: Optional[int] = None,
        is_admin: bool = False,
    ):
        self.poll_id = poll_id
        self.options = list(options)
        self._submit = submit
        self.votes = list(votes) if votes is not None else [0] * len(options)
        self.is_admin = is_admin
        self.selected_index = previous_choice
        self.points_awarded = 0
        self.already_voted = False
        self.state = (
            PollState.LOCKED
            if is_admin or previous_choice is not None
            else PollState.UNVOTED
        )

    @property
    def can_submit(self) -> bool:
        return self.state == PollState.UNVOTED and not self.is_admin

    @property
    def total_votes(self) -> int:
        return sum(self.votes)

    def percentages(self) -> List[int]:
        total = self.total_votes
        if not total:
            return [0] * len(self.votes)
        return [round(count * 100 / total) for count in self.votes]

    async def vote(self, option_index: int) -> bool:
        if not self.can_submit:
            return False
        if not 0 <= option_index < len(self.options):
            raise ValueError(f"Option {option_index} is out of range")

        self.state = PollState.SUBMITTING
        try:
            receipt = await self._submit(option_index)
        except BaseException:
            logger.warning("Vote on poll %s failed", self.poll_id)
            self.state = PollState.UNVOTED
            raise

        self.selected_index = receipt.selected_index
        if receipt.votes:
            self.votes = list(receipt.votes)
        self.already_voted = receipt.already_voted
        self.points_awarded = 0 if receipt.already_voted else receipt.points_awarded
        self.state = PollState.LOCKED
        return True


class LikeToggle:
    """
    One-way like button with an optimistic count.

    The like is applied locally before the remote call and rolled back if
    that call fails.
    """

    def __init__(
        self,
        post_id: str,
        send_like: Callable[[], Awaitable[object]],
        likes: int = 0,
        liked: bool = False,
    ):
        self.post_id = post_id
        self._send_like = send_like
        self.likes = likes
        self.state = LikeState.LIKED if liked else LikeState.NOT_LIKED
        self.pending = False

    @property
    def can_like(self) -> bool:
        return self.state == LikeState.NOT_LIKED and not self.pending

    def _apply(self) -> None:
        self.state = LikeState.LIKED
        self.likes += 1
        self.pending = True

    def _rollback(self) -> None:
        self.state = LikeState.NOT_LIKED
        self.likes -= 1

    async def like(self) -> bool:
        if not self.can_like:
            return False
        self._apply()
        try:
            await self._send_like()
        except BaseException:
            logger.warning("Like on post %s failed, rolling back", self.post_id)
            self._rollback()
            raise
        finally:
            self.pending = False
        return True

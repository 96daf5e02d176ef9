import unittest
from datetime import date

from sevadar.db import FeedPostRecord, InMemoryDbClient, ProfileRecord, QuizRecord
from sevadar.gamification import (
    IneligibleActionError,
    answer_quiz,
    award_daily_poster,
    award_once,
    cast_vote,
    comment_on_post,
    like_post,
    points_for,
    share_post,
)
from shared.types import AwardOutcome, PointAction

QUIZ_DAY = date(2025, 10, 20)


class AwardTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.upsert_profile(ProfileRecord(id="u1", full_name="Ramesh", points=40))
        self.db.upsert_profile(ProfileRecord(id="admin", full_name="Team", is_admin=True))

    def test_daily_poster_is_credited_once_per_day(self):
        first = award_daily_poster(self.db, "u1", today=date(2025, 10, 20), amount=10)
        second = award_daily_poster(self.db, "u1", today=date(2025, 10, 20), amount=10)

        self.assertEqual(first.outcome, AwardOutcome.AWARDED)
        self.assertEqual(first.total, 50)
        self.assertEqual(second.outcome, AwardOutcome.ALREADY_AWARDED)
        self.assertEqual(second.total, 50)
        self.assertEqual(self.db.get_profile("u1").points, 50)
        self.assertEqual(self.db.get_profile("u1").last_poster_credit_day, "2025-10-20")

    def test_daily_poster_next_day_earns_again(self):
        award_daily_poster(self.db, "u1", today=date(2025, 10, 20), amount=10)
        result = award_daily_poster(self.db, "u1", today=date(2025, 10, 21), amount=10)
        self.assertTrue(result.awarded)
        self.assertEqual(result.total, 60)

    def test_admin_is_ineligible(self):
        result = award_daily_poster(self.db, "admin", today=date(2025, 10, 20), amount=10)
        self.assertEqual(result.outcome, AwardOutcome.INELIGIBLE)
        self.assertEqual(self.db.get_profile("admin").points, 0)
        self.assertFalse(self.db.has_award("admin", PointAction.DAILY_POSTER, "2025-10-20"))

    def test_award_once_unknown_user(self):
        with self.assertRaises(LookupError):
            award_once(self.db, "ghost", PointAction.SHARE, "p1", 2)

    def test_as_dict(self):
        result = award_once(self.db, "u1", PointAction.SHARE, "p1", 2)
        self.assertEqual(result.as_dict(), {"outcome": "AWARDED", "total": 42, "amount": 2})

    def test_default_point_values(self):
        self.assertEqual(points_for(PointAction.DAILY_POSTER), 10)
        self.assertEqual(points_for(PointAction.VOTE), 5)
        self.assertEqual(points_for(PointAction.LIKE), 1)
        self.assertEqual(points_for(PointAction.ONBOARDING), 10)


class PollVoteTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.upsert_profile(ProfileRecord(id="u1", points=0))
        self.db.upsert_profile(ProfileRecord(id="admin", is_admin=True))
        self.poll = self.db.create_poll("Best scheme?", ["Roads", "Water", "Schools"])

    def test_second_vote_is_absorbed(self):
        first = cast_vote(self.db, "u1", self.poll.id, 1, amount=5)
        second = cast_vote(self.db, "u1", self.poll.id, 2, amount=5)

        self.assertTrue(first.created)
        self.assertEqual(first.points_awarded, 5)
        self.assertFalse(second.created)
        self.assertEqual(second.selected_index, 1)
        self.assertEqual(second.points_awarded, 0)
        self.assertEqual(second.points_total, 5)
        self.assertEqual(self.db.get_poll(self.poll.id).votes, [0, 1, 0])

    def test_admin_cannot_vote(self):
        with self.assertRaises(IneligibleActionError):
            cast_vote(self.db, "admin", self.poll.id, 0)

    def test_out_of_range_option(self):
        with self.assertRaises(ValueError):
            cast_vote(self.db, "u1", self.poll.id, 3)

    def test_closed_poll(self):
        self.db.polls[self.poll.id].is_active = False
        with self.assertRaises(ValueError):
            cast_vote(self.db, "u1", self.poll.id, 0)

    def test_unknown_poll(self):
        with self.assertRaises(LookupError):
            cast_vote(self.db, "u1", "missing", 0)


class QuizAnswerTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.upsert_profile(ProfileRecord(id="u1"))
        self.db.upsert_profile(ProfileRecord(id="u2"))
        self.db.upsert_profile(ProfileRecord(id="admin", is_admin=True))
        self.quiz = self.db.upsert_quiz(
            QuizRecord(
                id="q1",
                date="2025-10-20",
                question="Capital of Bihar?",
                options=["Gaya", "Patna", "Ranchi"],
                correct_index=1,
                points=7,
            )
        )

    def test_correct_answer_awards_quiz_points(self):
        outcome = answer_quiz(self.db, "u1", "q1", 1, today=QUIZ_DAY)
        self.assertTrue(outcome.is_correct)
        self.assertEqual(outcome.points_awarded, 7)
        self.assertEqual(self.db.get_profile("u1").points, 7)

    def test_wrong_answer_is_final(self):
        first = answer_quiz(self.db, "u2", "q1", 0, today=QUIZ_DAY)
        retry = answer_quiz(self.db, "u2", "q1", 1, today=QUIZ_DAY)
        self.assertFalse(first.is_correct)
        self.assertFalse(retry.created)
        self.assertEqual(retry.selected_index, 0)
        self.assertFalse(retry.is_correct)
        self.assertEqual(self.db.get_profile("u2").points, 0)

    def test_admin_cannot_answer(self):
        with self.assertRaises(IneligibleActionError):
            answer_quiz(self.db, "admin", "q1", 1, today=QUIZ_DAY)

    def test_unknown_quiz(self):
        with self.assertRaises(LookupError):
            answer_quiz(self.db, "u1", "nope", 1, today=QUIZ_DAY)

    def test_quiz_for_another_day_is_closed(self):
        self.db.upsert_quiz(
            QuizRecord(
                id="q2",
                date="2025-10-21",
                question="Tomorrow?",
                options=["a", "b"],
                correct_index=0,
                points=5,
            )
        )
        with self.assertRaises(ValueError):
            answer_quiz(self.db, "u1", "q2", 0, today=QUIZ_DAY)
        self.assertIsNone(self.db.get_quiz_submission("q2", "u1"))
        self.assertEqual(self.db.get_profile("u1").points, 0)


class FeedInteractionTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.upsert_profile(ProfileRecord(id="u1"))
        self.db.upsert_profile(ProfileRecord(id="admin", is_admin=True))
        self.db.create_feed_post(FeedPostRecord(id="f1", type="image", title="Camp"))

    def test_like_is_one_way(self):
        first = like_post(self.db, "u1", "f1", amount=1)
        second = like_post(self.db, "u1", "f1", amount=1)
        self.assertTrue(first.created)
        self.assertFalse(second.created)
        self.assertEqual(self.db.get_feed_post("f1").likes, 1)
        self.assertEqual(self.db.get_profile("u1").points, 1)

    def test_admin_like_counts_but_earns_nothing(self):
        outcome = like_post(self.db, "admin", "f1", amount=1)
        self.assertTrue(outcome.created)
        self.assertEqual(outcome.points_awarded, 0)
        self.assertEqual(self.db.get_feed_post("f1").likes, 1)

    def test_share_rewarded_once_per_post(self):
        self.assertTrue(share_post(self.db, "u1", "f1", amount=2).awarded)
        self.assertEqual(
            share_post(self.db, "u1", "f1", amount=2).outcome, AwardOutcome.ALREADY_AWARDED
        )
        with self.assertRaises(LookupError):
            share_post(self.db, "u1", "missing")

    def test_only_first_comment_earns(self):
        _, first = comment_on_post(self.db, "u1", "f1", " Great work ", amount=2)
        comment, second = comment_on_post(self.db, "u1", "f1", "Again", amount=2)
        self.assertTrue(first.awarded)
        self.assertFalse(second.awarded)
        self.assertEqual(comment.content, "Again")
        self.assertEqual(len(self.db.list_comments("f1")), 2)
        self.assertEqual(self.db.get_profile("u1").points, 2)

    def test_empty_comment_rejected(self):
        with self.assertRaises(ValueError):
            comment_on_post(self.db, "u1", "f1", "   ")


if __name__ == "__main__":
    unittest.main()

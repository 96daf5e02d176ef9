import unittest

from sevadar.db import InMemoryDbClient, ProfileRecord
from sevadar.leaderboard import LeaderboardEntry, dense_rank, get_leaderboard, rank_of


class DenseRankTests(unittest.TestCase):
    def test_ties_share_rank_without_gaps(self):
        entries = [
            LeaderboardEntry(user_id=str(i), points=p)
            for i, p in enumerate([500, 500, 300, 300, 300, 100])
        ]
        ranked = dense_rank(entries)
        self.assertEqual([e.rank for e in ranked], [1, 1, 2, 2, 2, 3])
        # Inputs are not mutated.
        self.assertEqual([e.rank for e in entries], [0] * 6)

    def test_empty(self):
        self.assertEqual(dense_rank([]), [])

    def test_all_equal(self):
        ranked = dense_rank(LeaderboardEntry(user_id=str(i), points=0) for i in range(4))
        self.assertEqual({e.rank for e in ranked}, {1})


class LeaderboardQueryTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        for user_id, points in [("a", 120), ("b", 300), ("c", 120), ("d", 15)]:
            self.db.upsert_profile(
                ProfileRecord(id=user_id, full_name=user_id.upper(), village="Rampur", points=points)
            )
        self.db.upsert_profile(ProfileRecord(id="admin", points=9999, is_admin=True))

    def test_admins_excluded_and_ranked(self):
        board = get_leaderboard(self.db)
        self.assertEqual([e.user_id for e in board][0], "b")
        self.assertNotIn("admin", [e.user_id for e in board])
        self.assertEqual([e.rank for e in board], [1, 2, 2, 3])
        self.assertEqual(board[0].as_dict()["display_name"], "B")

    def test_limit(self):
        self.assertEqual(len(get_leaderboard(self.db, limit=2)), 2)

    def test_rank_of_matches_board(self):
        board = {e.user_id: e.rank for e in get_leaderboard(self.db)}
        for user_id in ["a", "b", "c", "d"]:
            self.assertEqual(rank_of(self.db, self.db.get_profile(user_id)), board[user_id])
        self.assertIsNone(rank_of(self.db, self.db.get_profile("admin")))


if __name__ == "__main__":
    unittest.main()

"""
Sevadar Mission 2029 backend.

A FastAPI service for the campaign app: personalised poster rendering,
polls, daily quizzes, the feed, points and the leaderboard, with storage
and database abstractions that fall back to in-memory doubles for local
runs and tests.
"""

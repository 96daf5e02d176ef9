import json
import os
import shutil
import tempfile
import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from firebase_admin import messaging

from poster_pipeline.templates import PosterCatalog
from sevadar.db import InMemoryDbClient, QuizRecord
from sevadar.notifications import (
    FCM_BATCH_LIMIT,
    FirebasePushNotifier,
    InMemoryPushNotifier,
    choose_daily_message,
    send_daily_notification,
)

LINK = "https://brijeshtiwari.in"


def _batch_response(messages, failing=None):
    failing = failing or {}
    results = []
    for message in messages:
        error = failing.get(message.token)
        results.append(MagicMock(success=error is None, exception=error))
    response = MagicMock()
    response.responses = results
    response.failure_count = sum(1 for r in results if not r.success)
    response.success_count = len(results) - response.failure_count
    return response


class DailyMessageTests(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        path = os.path.join(self.tmp_dir, "posters.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(
                [
                    {
                        "id": "p1",
                        "title": "दीपावली",
                        "image": "https://cdn.example/diwali.jpg",
                        "type": "dated",
                        "date": "20-10-2025",
                    }
                ],
                f,
                ensure_ascii=False,
            )
        self.catalog = PosterCatalog(path)
        self.db = InMemoryDbClient()
        self.db.upsert_quiz(
            QuizRecord(
                id="q1",
                date="2025-10-21",
                question="?",
                options=["a", "b"],
                correct_index=0,
                points=8,
            )
        )

    def tearDown(self):
        if os.path.exists(self.tmp_dir):
            shutil.rmtree(self.tmp_dir)

    def test_poster_day(self):
        message = choose_daily_message(self.catalog, self.db, LINK, today=date(2025, 10, 20))
        self.assertEqual(message.kind, "poster")
        self.assertEqual(message.title, "🇮🇳 आज दीपावली है!")
        self.assertEqual(message.image, "https://cdn.example/diwali.jpg")
        self.assertEqual(message.link, LINK)

    def test_quiz_day(self):
        message = choose_daily_message(self.catalog, self.db, LINK, today=date(2025, 10, 21))
        self.assertEqual(message.kind, "quiz")
        self.assertIn("8", message.body)

    def test_quiet_day(self):
        self.assertIsNone(
            choose_daily_message(self.catalog, self.db, LINK, today=date(2025, 10, 22))
        )

    def test_send_to_all_tokens_in_batches(self):
        for i in range(FCM_BATCH_LIMIT + 1):
            self.db.save_push_token(f"token-{i}", None)
        notifier = InMemoryPushNotifier()

        message, report = send_daily_notification(
            self.db, self.catalog, notifier, LINK, today=date(2025, 10, 20)
        )

        self.assertEqual(message.kind, "poster")
        self.assertEqual(report.sent, FCM_BATCH_LIMIT + 1)
        self.assertEqual([len(batch) for batch, _ in notifier.sent], [FCM_BATCH_LIMIT, 1])

    def test_nothing_to_send(self):
        notifier = InMemoryPushNotifier()
        self.assertEqual(
            send_daily_notification(self.db, self.catalog, notifier, LINK, date(2025, 10, 22)),
            (None, None),
        )
        message, report = send_daily_notification(
            self.db, self.catalog, notifier, LINK, date(2025, 10, 20)
        )
        self.assertIsNotNone(message)
        self.assertIsNone(report)
        self.assertEqual(notifier.sent, [])


class FirebasePushNotifierTests(unittest.TestCase):
    @patch("sevadar.notifications.messaging.send_each")
    @patch("sevadar.notifications.firebase_admin.get_app")
    def test_unregistered_tokens_are_reported_and_pruned(self, mock_get_app, mock_send_each):
        mock_get_app.return_value = MagicMock()
        gone = messaging.UnregisteredError("Requested entity was not found.")
        mock_send_each.side_effect = lambda messages, app=None: _batch_response(
            messages, {"stale": gone}
        )

        db = InMemoryDbClient()
        for token in ["fresh", "stale"]:
            db.save_push_token(token, "u1")
        db.upsert_quiz(
            QuizRecord(id="q1", date="2025-10-21", question="?", options=["a", "b"], correct_index=0)
        )
        catalog = PosterCatalog(os.path.join(tempfile.gettempdir(), "no-such-catalog.json"))

        message, report = send_daily_notification(
            db, catalog, FirebasePushNotifier(), LINK, today=date(2025, 10, 21)
        )

        self.assertEqual(message.kind, "quiz")
        self.assertEqual(report.sent, 1)
        self.assertEqual(report.failed, 1)
        self.assertEqual(report.invalid_tokens, ["stale"])
        self.assertEqual(db.list_push_tokens(), ["fresh"])
        sent = mock_send_each.call_args[0][0]
        self.assertEqual(sent[0].webpush.fcm_options.link, LINK)

    @patch("sevadar.notifications.messaging.send_each")
    @patch("sevadar.notifications.firebase_admin.get_app")
    def test_batches_respect_fcm_limit(self, mock_get_app, mock_send_each):
        mock_get_app.return_value = MagicMock()
        mock_send_each.side_effect = lambda messages, app=None: _batch_response(messages)
        tokens = [f"t{i}" for i in range(FCM_BATCH_LIMIT * 2 + 3)]
        db = InMemoryDbClient()
        db.upsert_quiz(
            QuizRecord(id="q1", date="2025-10-21", question="?", options=["a", "b"], correct_index=0)
        )
        message = choose_daily_message(
            PosterCatalog(os.path.join(tempfile.gettempdir(), "no-such-catalog.json")),
            db,
            LINK,
            today=date(2025, 10, 21),
        )

        report = FirebasePushNotifier().send(tokens, message)

        self.assertEqual(mock_send_each.call_count, 3)
        self.assertEqual(report.sent, len(tokens))
        self.assertEqual(report.invalid_tokens, [])


if __name__ == "__main__":
    unittest.main()

"""
Daily push notifications through Firebase Cloud Messaging.

Once a day the campaign announces today's poster if one is dated today,
otherwise today's quiz if one exists, otherwise nothing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Protocol

import firebase_admin
from firebase_admin import credentials, messaging

from poster_pipeline.templates import PosterCatalog, campaign_today
from sevadar.db import DbClient

logger = logging.getLogger(__name__)

FCM_BATCH_LIMIT = 500
FIREBASE_APP_NAME = "sevadar"

POSTER_TITLE = "🇮🇳 आज {title} है!"
POSTER_BODY = "Sevadar ऐप से अभी अपना पोस्टर बनाएं और शेयर करें।"
QUIZ_TITLE = "🧠 आज का सवाल लाइव है!"
QUIZ_BODY = "सही जवाब दें और {points} पॉइंट्स जीतें। अभी खेलें!"


@dataclass
class DailyMessage:
    kind: str  # "poster" | "quiz"
    title: str
    body: str
    link: str
    image: Optional[str] = None


@dataclass
class DispatchReport:
    sent: int = 0
    failed: int = 0
    invalid_tokens: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"sent": self.sent, "failed": self.failed}


class PushNotifier(Protocol):
    def send(self, tokens: List[str], message: DailyMessage) -> DispatchReport:
        ...


def choose_daily_message(
    catalog: PosterCatalog, db: DbClient, link: str, today: date | None = None
) -> Optional[DailyMessage]:
    """Poster of the day beats quiz of the day; neither means no message."""
    today = today or campaign_today(catalog.tz_name)
    posters = catalog.todays(today)
    if posters:
        poster = posters[0]
        return DailyMessage(
            kind="poster",
            title=POSTER_TITLE.format(title=poster.title),
            body=POSTER_BODY,
            link=link,
            image=poster.image if poster.image.startswith("http") else None,
        )

    quiz = db.get_quiz_for_date(today.isoformat())
    if quiz:
        return DailyMessage(
            kind="quiz",
            title=QUIZ_TITLE,
            body=QUIZ_BODY.format(points=quiz.points),
            link=link,
        )
    return None


def _load_credentials(service_account: str) -> credentials.Certificate:
    # Accepts the service account JSON inline or a path to it.
    if service_account.lstrip().startswith("{"):
        return credentials.Certificate(json.loads(service_account))
    return credentials.Certificate(service_account)


class FirebasePushNotifier:
    """Sends web push messages with the Firebase Admin SDK."""

    def __init__(self, service_account: Optional[str] = None):
        try:
            self.app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            cred = _load_credentials(service_account) if service_account else None
            self.app = firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)

    def _build(self, token: str, message: DailyMessage) -> messaging.Message:
        return messaging.Message(
            token=token,
            notification=messaging.Notification(
                title=message.title, body=message.body, image=message.image
            ),
            webpush=messaging.WebpushConfig(
                fcm_options=messaging.WebpushFCMOptions(link=message.link)
            ),
        )

    def send(self, tokens: List[str], message: DailyMessage) -> DispatchReport:
        report = DispatchReport()
        for start in range(0, len(tokens), FCM_BATCH_LIMIT):
            batch = tokens[start : start + FCM_BATCH_LIMIT]
            response = messaging.send_each(
                [self._build(token, message) for token in batch], app=self.app
            )
            report.sent += response.success_count
            report.failed += response.failure_count
            for token, result in zip(batch, response.responses):
                if not result.success and isinstance(
                    result.exception, messaging.UnregisteredError
                ):
                    report.invalid_tokens.append(token)
        return report


class InMemoryPushNotifier:
    """Records messages instead of sending them."""

    def __init__(self):
        self.sent: List[tuple[List[str], DailyMessage]] = []

    def send(self, tokens: List[str], message: DailyMessage) -> DispatchReport:
        for start in range(0, len(tokens), FCM_BATCH_LIMIT):
            self.sent.append((tokens[start : start + FCM_BATCH_LIMIT], message))
        return DispatchReport(sent=len(tokens))


def send_daily_notification(
    db: DbClient,
    catalog: PosterCatalog,
    notifier: PushNotifier,
    link: str,
    today: date | None = None,
) -> tuple[Optional[DailyMessage], Optional[DispatchReport]]:
    """
    Picks today's message and pushes it to every registered token.

    Returns:
        The chosen message (None if nothing to announce) and the dispatch
        report (None if nothing was sent).
    """
    message = choose_daily_message(catalog, db, link, today=today)
    if message is None:
        logger.info("Nothing special to notify today")
        return None, None

    tokens = db.list_push_tokens()
    if not tokens:
        logger.info("No push tokens registered")
        return message, None

    report = notifier.send(tokens, message)
    if report.invalid_tokens:
        removed = db.delete_push_tokens(report.invalid_tokens)
        logger.info("Removed %d unregistered push tokens", removed)
    logger.info(
        "Daily %s notification: %d sent, %d failed", message.kind, report.sent, report.failed
    )
    return message, report

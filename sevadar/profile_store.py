"""
Profile/session store for the current user.

The store is created once per session and handed to whatever needs it.
State only changes through `dispatch()` with one of the message types below;
subscribers are notified after every change and the state is written to a
local JSON file so it survives restarts.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Callable, List, Optional, Union

from sevadar.db import ProfileRecord

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "hi"


@dataclass(frozen=True)
class ProfileState:
    user_id: Optional[str] = None
    full_name: str = ""
    designation: str = ""
    village: str = ""
    avatar_url: Optional[str] = None
    language: str = DEFAULT_LANGUAGE
    points: int = 0
    is_admin: bool = False
    setup_complete: bool = False


@dataclass(frozen=True)
class UpdateIdentity:
    """Partial edit of the fields drawn on posters. None leaves a field alone."""

    full_name: Optional[str] = None
    designation: Optional[str] = None
    village: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class SetLanguage:
    language: str


@dataclass(frozen=True)
class SetPoints:
    points: int


@dataclass(frozen=True)
class AddPoints:
    delta: int


@dataclass(frozen=True)
class SetFlags:
    is_admin: Optional[bool] = None
    setup_complete: Optional[bool] = None


@dataclass(frozen=True)
class SignedIn:
    user_id: str


@dataclass(frozen=True)
class SignedOut:
    pass


ProfileMessage = Union[
    UpdateIdentity, SetLanguage, SetPoints, AddPoints, SetFlags, SignedIn, SignedOut
]
Subscriber = Callable[[ProfileState, ProfileMessage], None]


def _without_none(message) -> dict:
    return {k: v for k, v in asdict(message).items() if v is not None}


def reduce(state: ProfileState, message: ProfileMessage) -> ProfileState:
    """Pure transition from one state to the next."""
    if isinstance(message, (UpdateIdentity, SetFlags)):
        return replace(state, **_without_none(message))
    if isinstance(message, SetLanguage):
        return replace(state, language=message.language)
    if isinstance(message, SetPoints):
        return replace(state, points=message.points)
    if isinstance(message, AddPoints):
        return replace(state, points=state.points + message.delta)
    if isinstance(message, SignedIn):
        if state.user_id and state.user_id != message.user_id:
            # A different account must not inherit cached identity or points.
            return ProfileState(user_id=message.user_id, language=state.language)
        return replace(state, user_id=message.user_id)
    if isinstance(message, SignedOut):
        return ProfileState(language=state.language)
    raise TypeError(f"Unsupported profile message: {message!r}")


class ProfileStore:
    """Holds the current user's profile state."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._state = ProfileState()
        self._subscribers: List[Subscriber] = []
        self.loaded = False

    @property
    def state(self) -> ProfileState:
        return self._state

    def load(self) -> ProfileState:
        """Restores persisted state; a missing or unreadable file leaves defaults."""
        if self.path and os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                known = {f.name for f in fields(ProfileState)}
                self._state = ProfileState(**{k: v for k, v in raw.items() if k in known})
            except (OSError, ValueError, TypeError) as e:
                logger.error("Failed to load profile from %s: %s", self.path, e)
        self.loaded = True
        return self._state

    def _save(self) -> None:
        if not self.path:
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(asdict(self._state), f, ensure_ascii=False)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers `callback`; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, message: ProfileMessage) -> ProfileState:
        new_state = reduce(self._state, message)
        if new_state == self._state:
            return self._state
        self._state = new_state
        self._save()
        for callback in list(self._subscribers):
            callback(new_state, message)
        return new_state

    def reconcile(self, record: ProfileRecord) -> ProfileState:
        """Adopts the server's view of the profile, which always wins."""
        self.dispatch(SignedIn(record.id))
        self.dispatch(
            UpdateIdentity(
                full_name=record.full_name,
                designation=record.designation,
                village=record.village,
                avatar_url=record.avatar_url,
            )
        )
        self.dispatch(SetPoints(record.points))
        return self.dispatch(
            SetFlags(is_admin=record.is_admin, setup_complete=record.setup_complete)
        )

    def overlay_fields(self) -> dict:
        """Name, status and village as the poster compositor wants them."""
        return {
            "display_name": self._state.full_name,
            "status_line": self._state.designation,
            "village_name": self._state.village,
        }

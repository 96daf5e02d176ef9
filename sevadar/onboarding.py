"""
First-run onboarding: the step wizard and the server-side completion.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from poster_pipeline.image_utils import CropArea, ImageSource, compress_photo, crop_square, load_image
from sevadar.db import DbClient, ProfileRecord
from sevadar.gamification import ONBOARDING_SCOPE, AwardResult, award_once
from sevadar.profile_store import ProfileStore, SetFlags, UpdateIdentity
from sevadar.storage import StorageClient
from shared.types import AwardOutcome, PointAction

logger = logging.getLogger(__name__)

DEFAULT_DESIGNATION = "नागरिक"
PROFILE_PHOTO_PREFIX = "profiles"


class OnboardingStep(Enum):
    NAME = 1
    VILLAGE = 2
    PHOTO = 3
    REVIEW = 4


@dataclass
class OnboardingDetails:
    full_name: str
    village: str
    designation: str = DEFAULT_DESIGNATION
    avatar_url: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "full_name": self.full_name,
            "village": self.village,
            "designation": self.designation,
            "avatar_url": self.avatar_url,
        }


class OnboardingWizard:
    """
    Collects name, village (with optional designation) and photo, in that
    order. The photo step may be skipped; the first two may not.
    """

    def __init__(self, store: ProfileStore):
        self.store = store
        self.step = OnboardingStep.NAME
        self.full_name = ""
        self.village = ""
        self.designation = ""
        self.avatar_url: Optional[str] = None

    @property
    def required(self) -> bool:
        """Whether the wizard should be shown at all."""
        state = self.store.state
        return not (state.is_admin or state.setup_complete)

    def can_advance(self) -> bool:
        if self.step == OnboardingStep.NAME:
            return bool(self.full_name.strip())
        if self.step == OnboardingStep.VILLAGE:
            return bool(self.village.strip())
        return self.step == OnboardingStep.PHOTO

    def next(self) -> OnboardingStep:
        if self.can_advance():
            self.step = OnboardingStep(self.step.value + 1)
        return self.step

    def back(self) -> OnboardingStep:
        if self.step != OnboardingStep.NAME:
            self.step = OnboardingStep(self.step.value - 1)
        return self.step

    def details(self) -> OnboardingDetails:
        if self.step != OnboardingStep.REVIEW:
            raise ValueError(f"Cannot finish onboarding from step {self.step.name}")
        return OnboardingDetails(
            full_name=self.full_name.strip(),
            village=self.village.strip(),
            designation=self.designation.strip() or DEFAULT_DESIGNATION,
            avatar_url=self.avatar_url,
        )

    def finish(self, server_profile: ProfileRecord | None = None) -> OnboardingDetails:
        """
        Applies the collected details to the store. When the server's profile
        is available it is reconciled afterwards so the points bonus shows up.
        """
        details = self.details()
        self.store.dispatch(
            UpdateIdentity(
                full_name=details.full_name,
                designation=details.designation,
                village=details.village,
                avatar_url=details.avatar_url,
            )
        )
        self.store.dispatch(SetFlags(setup_complete=True))
        if server_profile is not None:
            self.store.reconcile(server_profile)
        return details


def complete_onboarding(
    db: DbClient, user_id: str, details: OnboardingDetails, points: int
) -> tuple[ProfileRecord, AwardResult]:
    """
    Saves the onboarding details, marks setup complete and grants the one-time
    onboarding bonus. Admins are marked complete without any points.
    """
    profile = db.get_profile(user_id)
    if profile is None:
        raise LookupError(f"Profile {user_id} not found")

    if profile.is_admin:
        updated = db.update_profile(user_id, setup_complete=True)
        return updated, AwardResult(AwardOutcome.INELIGIBLE, updated.points)

    if not details.full_name or not details.village:
        raise ValueError("Name and village are required")

    fields = {
        "full_name": details.full_name,
        "village": details.village,
        "designation": details.designation or DEFAULT_DESIGNATION,
        "setup_complete": True,
    }
    if details.avatar_url:
        fields["avatar_url"] = details.avatar_url
    db.update_profile(user_id, **fields)
    award = award_once(db, user_id, PointAction.ONBOARDING, ONBOARDING_SCOPE, points)
    return db.get_profile(user_id), award


def store_profile_photo(
    storage: StorageClient,
    user_id: str,
    source: ImageSource,
    crop: CropArea | None = None,
) -> str:
    """
    Crops, compresses and uploads a profile photo.

    Returns:
        str: URL of the stored JPEG.

    Raises:
        ValueError: If the image cannot be read or the crop is outside it.
    """
    loaded = load_image(source)
    if not loaded.ok:
        raise ValueError(f"Unreadable profile photo: {loaded.error}")
    image = crop_square(loaded.image, crop) if crop else loaded.image
    data = compress_photo(image)
    path = f"{PROFILE_PHOTO_PREFIX}/{user_id}/{uuid.uuid4().hex}.jpg"
    storage.put_bytes(path, data, "image/jpeg")
    logger.info("Stored profile photo for %s at %s (%d bytes)", user_id, path, len(data))
    return storage.public_url(path)

import io
import unittest

from PIL import Image as PIL_Image

from poster_pipeline.image_utils import CropArea
from sevadar.db import InMemoryDbClient, ProfileRecord
from sevadar.onboarding import (
    DEFAULT_DESIGNATION,
    OnboardingDetails,
    OnboardingStep,
    OnboardingWizard,
    complete_onboarding,
    store_profile_photo,
)
from sevadar.profile_store import ProfileStore, SetFlags
from sevadar.storage import InMemoryStorageClient
from shared.types import AwardOutcome


class OnboardingWizardTests(unittest.TestCase):
    def setUp(self):
        self.store = ProfileStore()
        self.wizard = OnboardingWizard(self.store)

    def test_name_and_village_are_required(self):
        self.assertEqual(self.wizard.next(), OnboardingStep.NAME)
        self.wizard.full_name = "  "
        self.assertFalse(self.wizard.can_advance())
        self.wizard.full_name = "Ramesh"
        self.assertEqual(self.wizard.next(), OnboardingStep.VILLAGE)
        self.assertEqual(self.wizard.next(), OnboardingStep.VILLAGE)
        self.wizard.village = "Rampur"
        self.assertEqual(self.wizard.next(), OnboardingStep.PHOTO)

    def test_photo_is_optional_and_back_works(self):
        self.wizard.full_name = "Ramesh"
        self.wizard.next()
        self.wizard.village = "Rampur"
        self.wizard.next()
        self.assertEqual(self.wizard.next(), OnboardingStep.REVIEW)
        self.assertFalse(self.wizard.can_advance())
        self.assertEqual(self.wizard.back(), OnboardingStep.PHOTO)
        self.wizard.back()
        self.wizard.back()
        self.assertEqual(self.wizard.back(), OnboardingStep.NAME)

    def test_finish_applies_defaults_to_store(self):
        self.wizard.full_name = " Ramesh "
        self.wizard.next()
        self.wizard.village = "Rampur"
        self.wizard.next()
        self.wizard.next()

        details = self.wizard.finish()

        self.assertEqual(details.designation, DEFAULT_DESIGNATION)
        self.assertEqual(self.store.state.full_name, "Ramesh")
        self.assertTrue(self.store.state.setup_complete)
        self.assertFalse(self.wizard.required)

    def test_finish_before_review_fails(self):
        with self.assertRaises(ValueError):
            self.wizard.finish()

    def test_admin_skips_wizard(self):
        self.store.dispatch(SetFlags(is_admin=True))
        self.assertFalse(self.wizard.required)


class CompleteOnboardingTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.upsert_profile(ProfileRecord(id="u1", points=3))
        self.db.upsert_profile(ProfileRecord(id="admin", is_admin=True))
        self.details = OnboardingDetails(full_name="Ramesh", village="Rampur")

    def test_bonus_is_added_once(self):
        profile, award = complete_onboarding(self.db, "u1", self.details, 10)
        self.assertEqual(award.outcome, AwardOutcome.AWARDED)
        self.assertEqual(profile.points, 13)
        self.assertTrue(profile.setup_complete)
        self.assertEqual(profile.designation, DEFAULT_DESIGNATION)

        profile, award = complete_onboarding(self.db, "u1", self.details, 10)
        self.assertEqual(award.outcome, AwardOutcome.ALREADY_AWARDED)
        self.assertEqual(profile.points, 13)

    def test_admin_marked_complete_without_points(self):
        profile, award = complete_onboarding(self.db, "admin", OnboardingDetails("", ""), 10)
        self.assertEqual(award.outcome, AwardOutcome.INELIGIBLE)
        self.assertTrue(profile.setup_complete)
        self.assertEqual(profile.points, 0)

    def test_missing_fields(self):
        with self.assertRaises(ValueError):
            complete_onboarding(self.db, "u1", OnboardingDetails("Ramesh", ""), 10)
        with self.assertRaises(LookupError):
            complete_onboarding(self.db, "ghost", self.details, 10)


class ProfilePhotoTests(unittest.TestCase):
    def test_photo_is_cropped_compressed_and_stored(self):
        storage = InMemoryStorageClient()
        buffer = io.BytesIO()
        PIL_Image.new("RGB", (1200, 900), (20, 20, 20)).save(buffer, format="PNG")

        url = store_profile_photo(storage, "u1", buffer.getvalue(), CropArea(100, 0, 900, 900))

        self.assertEqual(len(storage.stored_objects), 1)
        path, (data, content_type) = next(iter(storage.stored_objects.items()))
        self.assertTrue(path.startswith("profiles/u1/"))
        self.assertEqual(content_type, "image/jpeg")
        self.assertEqual(url, storage.public_url(path))
        with PIL_Image.open(io.BytesIO(data)) as img:
            self.assertEqual(img.size, (500, 500))

    def test_unreadable_photo(self):
        with self.assertRaises(ValueError):
            store_profile_photo(InMemoryStorageClient(), "u1", b"nope")


if __name__ == "__main__":
    unittest.main()

import json
import os
import shutil
import tempfile
import unittest

from sevadar.db import ProfileRecord
from sevadar.profile_store import (
    AddPoints,
    ProfileState,
    ProfileStore,
    SetFlags,
    SetLanguage,
    SetPoints,
    SignedIn,
    SignedOut,
    UpdateIdentity,
    reduce,
)


class ReduceTests(unittest.TestCase):
    def test_partial_identity_update(self):
        state = ProfileState(full_name="Ramesh", village="Rampur")
        state = reduce(state, UpdateIdentity(designation="Pradhan"))
        self.assertEqual(state.full_name, "Ramesh")
        self.assertEqual(state.designation, "Pradhan")

    def test_points(self):
        state = reduce(ProfileState(), SetPoints(40))
        self.assertEqual(reduce(state, AddPoints(5)).points, 45)

    def test_switching_account_drops_cached_identity(self):
        state = ProfileState(user_id="u1", full_name="Ramesh", points=50, language="en")
        state = reduce(state, SignedIn("u2"))
        self.assertEqual(state, ProfileState(user_id="u2", language="en"))

    def test_same_account_sign_in_keeps_state(self):
        state = ProfileState(user_id="u1", full_name="Ramesh")
        self.assertEqual(reduce(state, SignedIn("u1")), state)

    def test_sign_out_keeps_language(self):
        state = reduce(ProfileState(user_id="u1", language="en", points=3), SignedOut())
        self.assertEqual(state, ProfileState(language="en"))

    def test_unknown_message(self):
        with self.assertRaises(TypeError):
            reduce(ProfileState(), "points please")


class ProfileStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.tmp_dir, "cache", "profile.json")

    def tearDown(self):
        if os.path.exists(self.tmp_dir):
            shutil.rmtree(self.tmp_dir)

    def test_dispatch_notifies_and_persists(self):
        store = ProfileStore(self.path)
        seen = []
        unsubscribe = store.subscribe(lambda state, message: seen.append(message))

        store.dispatch(SetLanguage("en"))
        store.dispatch(SetLanguage("en"))
        unsubscribe()
        store.dispatch(SetPoints(10))

        self.assertEqual(seen, [SetLanguage("en")])
        with open(self.path, "r", encoding="utf-8") as f:
            self.assertEqual(json.load(f)["points"], 10)

    def test_load_restores_state(self):
        store = ProfileStore(self.path)
        store.dispatch(UpdateIdentity(full_name="सीता देवी"))
        store.dispatch(SetFlags(setup_complete=True))

        restored = ProfileStore(self.path).load()
        self.assertEqual(restored.full_name, "सीता देवी")
        self.assertTrue(restored.setup_complete)

    def test_load_ignores_unreadable_file(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("not json")
        store = ProfileStore(self.path)
        with self.assertLogs("sevadar.profile_store", level="ERROR"):
            state = store.load()
        self.assertEqual(state, ProfileState())
        self.assertTrue(store.loaded)

    def test_reconcile_prefers_server(self):
        store = ProfileStore()
        store.dispatch(SignedIn("u1"))
        store.dispatch(SetPoints(99))
        state = store.reconcile(
            ProfileRecord(
                id="u1",
                full_name="Ramesh",
                designation="Sevak",
                village="Rampur",
                points=60,
                setup_complete=True,
            )
        )
        self.assertEqual(state.points, 60)
        self.assertTrue(state.setup_complete)
        self.assertEqual(
            store.overlay_fields(),
            {"display_name": "Ramesh", "status_line": "Sevak", "village_name": "Rampur"},
        )


if __name__ == "__main__":
    unittest.main()

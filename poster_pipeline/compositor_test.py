# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import io
import os
import shutil
import tempfile
import unittest

from PIL import Image as PIL_Image

from poster_pipeline import compositor
from poster_pipeline.compositor import (
    PosterCompositor,
    RenderOutcome,
    compose_poster,
    fit_font_size,
    render_poster,
)
from shared.types import PosterGeometry, UserOverlay


def _fixed_width(per_char_ratio: float):
    """Measure stub: every glyph is `per_char_ratio * size` pixels wide."""

    def measure(text, size):
        return len(text) * size * per_char_ratio

    return measure


class FitFontSizeTest(unittest.TestCase):

    def test_text_that_fits_keeps_start_size(self):
        self.assertEqual(fit_font_size("A", 485, 78, 30, 2, _fixed_width(0.6)), 78)

    def test_returns_largest_fitting_step(self):
        # 10 glyphs at 0.5 -> width is 5 * size; 300px fits at 60 but not at 62.
        size = fit_font_size("x" * 10, 300, 78, 30, 2, _fixed_width(0.5))
        self.assertEqual(size, 60)

    def test_stops_at_floor_when_nothing_fits(self):
        size = fit_font_size("x" * 100, 100, 78, 30, 2, _fixed_width(0.6))
        self.assertEqual(size, 30)

    def test_odd_start_never_goes_below_floor(self):
        size = fit_font_size("x" * 100, 10, 51, 20, 2, _fixed_width(0.6))
        self.assertEqual(size, 20)

    def test_sizes_follow_step(self):
        for length in range(1, 60):
            size = fit_font_size("x" * length, 485, 78, 30, 2, _fixed_width(0.55))
            self.assertGreaterEqual(size, 30)
            self.assertLessEqual(size, 78)
            self.assertEqual((78 - size) % 2, 0)
            if size > 30:
                self.assertLessEqual(length * size * 0.55, 485)
            if size < 78:
                self.assertGreater(length * (size + 2) * 0.55, 485)


class PosterCompositorTest(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        self.background = PIL_Image.new("RGB", (540, 960), (10, 60, 120))
        self.footer_path = os.path.join(self.tmp_dir, "footer.png")
        PIL_Image.new("RGBA", (540, 90), (255, 153, 51, 255)).save(self.footer_path)
        self.compositor = PosterCompositor(admin_footer_path=self.footer_path)
        self.geometry = PosterGeometry()

    def tearDown(self):
        if os.path.exists(self.tmp_dir):
            shutil.rmtree(self.tmp_dir)

    def _decode(self, poster):
        return PIL_Image.open(io.BytesIO(poster.content))

    def test_user_render_draws_all_layers(self):
        overlay = UserOverlay(
            display_name="Ramesh",
            status_line="Sevadar",
            village_name="Rampur",
            photo=PIL_Image.new("RGB", (300, 300), (200, 200, 200)),
        )
        poster = self.compositor.render(self.background, overlay, self.geometry)

        self.assertTrue(poster.ok)
        self.assertEqual(poster.layers, ["background", "photo", "name", "status"])
        with self._decode(poster) as img:
            self.assertEqual(img.format, "JPEG")
            self.assertEqual(img.size, (1080, 1920))
        self.assertTrue(poster.data_uri.startswith("data:image/jpeg;base64,"))

    def test_single_glyph_name_keeps_configured_size(self):
        poster = self.compositor.render(
            self.background, UserOverlay(display_name="A"), self.geometry
        )
        self.assertEqual(poster.name_font_size, 78)

    def test_long_name_shrinks_in_two_pixel_steps(self):
        poster = self.compositor.render(
            self.background, UserOverlay(display_name="W" * 40), self.geometry
        )
        self.assertLess(poster.name_font_size, 78)
        self.assertGreaterEqual(poster.name_font_size, 30)
        self.assertEqual((78 - poster.name_font_size) % 2, 0)

    def test_status_starts_from_name_size(self):
        poster = self.compositor.render(
            self.background,
            UserOverlay(display_name="A", status_line="B"),
            self.geometry,
        )
        self.assertEqual(poster.status_font_size, round(78 * 0.65))
        self.assertNotIn("photo", poster.layers)

    def test_village_alone_is_drawn_as_status(self):
        poster = self.compositor.render(
            self.background, UserOverlay(display_name="A", village_name="Rampur"), self.geometry
        )
        self.assertIn("status", poster.layers)

    def test_admin_render_has_only_background_and_footer(self):
        overlay = UserOverlay(
            display_name="Admin",
            status_line="Team",
            photo=PIL_Image.new("RGB", (100, 100)),
        )
        poster = self.compositor.render(self.background, overlay, self.geometry, is_admin=True)
        self.assertTrue(poster.ok)
        self.assertEqual(poster.layers, ["background", "footer"])
        self.assertIsNone(poster.name_font_size)

    def test_admin_footer_failure_still_renders(self):
        comp = PosterCompositor(admin_footer_path=os.path.join(self.tmp_dir, "missing.webp"))
        poster = comp.render(self.background, UserOverlay(), self.geometry, is_admin=True)
        self.assertTrue(poster.ok)
        self.assertEqual(poster.layers, ["background"])

    def test_unloadable_photo_is_skipped(self):
        overlay = UserOverlay(display_name="Ramesh", photo=b"broken")
        poster = self.compositor.render(self.background, overlay, self.geometry)
        self.assertTrue(poster.ok)
        self.assertEqual(poster.layers, ["background", "name"])

    def test_photo_from_local_path_is_not_read(self):
        path = os.path.join(self.tmp_dir, "private.png")
        PIL_Image.new("RGB", (50, 50), (255, 0, 0)).save(path)
        overlay = UserOverlay(display_name="Ramesh", photo=path)
        poster = self.compositor.render(self.background, overlay, self.geometry)
        self.assertTrue(poster.ok)
        self.assertNotIn("photo", poster.layers)

    def test_failed_background_still_calls_back_once(self):
        results = []
        self.compositor.compose(
            os.path.join(self.tmp_dir, "missing.png"),
            UserOverlay(display_name="Ramesh"),
            self.geometry,
            results.append,
        )
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].status, RenderOutcome.FAILED)
        self.assertIn("Background", results[0].error)
        self.assertEqual(results[0].content, b"")

    def test_unexpected_error_is_reported_through_callback(self):
        results = []
        original = self.compositor.render

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        self.compositor.render = explode
        try:
            self.compositor.compose(self.background, UserOverlay(), self.geometry, results.append)
        finally:
            self.compositor.render = original
        self.assertEqual(len(results), 1)
        self.assertFalse(results[0].ok)
        self.assertEqual(results[0].error, "boom")

    def test_module_helpers(self):
        results = []
        compose_poster(self.background, UserOverlay(display_name="A"), results.append)
        self.assertEqual(len(results), 1)
        self.assertTrue(results[0].ok)

        poster = render_poster(self.background, UserOverlay(display_name="A"))
        self.assertTrue(poster.ok)
        self.assertEqual(poster.layers, ["background", "name"])

    def test_admin_jpeg_quality_is_lower(self):
        self.assertEqual(compositor.ADMIN_JPEG_QUALITY, 90)
        self.assertEqual(compositor.USER_JPEG_QUALITY, 95)



class PosterAssetTest(unittest.TestCase):

    def setUp(self):
        compositor.load_font.cache_clear()
        compositor.warn_missing_asset.cache_clear()
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        compositor.load_font.cache_clear()
        compositor.warn_missing_asset.cache_clear()
        shutil.rmtree(self.tmp_dir)

    def test_missing_font_is_reported_once(self):
        path = os.path.join(self.tmp_dir, "fonts", "TiroDevanagariHindi-Regular.ttf")
        with self.assertLogs("poster_pipeline.compositor", level="WARNING") as logs:
            compositor.load_font(path, 40)
            compositor.load_font(path, 42)
        self.assertEqual(sum(path in line for line in logs.output), 1)

    def test_missing_assets_lists_only_absent_files(self):
        present = os.path.join(self.tmp_dir, "footer.png")
        PIL_Image.new("RGB", (10, 2)).save(present)
        absent = os.path.join(self.tmp_dir, "fonts", "Poppins-SemiBold.ttf")
        comp = PosterCompositor(
            fonts=compositor.FontConfig(name_font_path=None, status_font_path=absent),
            admin_footer_path=present,
        )
        self.assertEqual(comp.missing_assets(), [absent])

if __name__ == "__main__":
    unittest.main()

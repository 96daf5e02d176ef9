import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from poster_pipeline import compositor
from sevadar import dependencies
from sevadar.config import Settings


class CompositorWiringTests(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()
        dependencies._compositor = None
        compositor.warn_missing_asset.cache_clear()

    def tearDown(self):
        dependencies._compositor = None
        compositor.warn_missing_asset.cache_clear()
        shutil.rmtree(self.tmp_dir)

    @patch("sevadar.dependencies.get_settings")
    def test_missing_fonts_are_logged_at_startup(self, mock_settings):
        name_font = os.path.join(self.tmp_dir, "TiroDevanagariHindi-Regular.ttf")
        status_font = os.path.join(self.tmp_dir, "Poppins-SemiBold.ttf")
        mock_settings.return_value = Settings(
            name_font_path=name_font,
            status_font_path=status_font,
            admin_footer_path=None,
        )
        with self.assertLogs("poster_pipeline.compositor", level="WARNING") as logs:
            comp = dependencies.get_compositor()
        self.assertEqual(comp.missing_assets(), [name_font, status_font])
        self.assertTrue(any(name_font in line for line in logs.output))
        self.assertTrue(any(status_font in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()

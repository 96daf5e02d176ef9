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

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from enum import Enum
from typing import Callable, List, Optional

from PIL import Image, ImageDraw, ImageFilter, ImageFont, features

from poster_pipeline.image_utils import (
    REQUEST_TIMEOUT,
    ImageSource,
    load_image,
    load_trusted_image,
    to_data_uri,
)
from shared.types import PosterGeometry, UserOverlay

logger = logging.getLogger(__name__)

CANVAS_WIDTH = 1080
CANVAS_HEIGHT = 1920

NAME_FONT_FLOOR = 30
NAME_FONT_STEP = 2
STATUS_FONT_FLOOR = 20
STATUS_FONT_STEP = 1
STATUS_FONT_RATIO = 0.65
TEXT_MARGIN = 10

PHOTO_BORDER_WIDTH = 6
PHOTO_RADIUS_DIVISOR = 7
FOOTER_BOTTOM_OFFSET = 1

NAME_COLOR = (255, 255, 255, 255)
STATUS_COLOR = (255, 235, 59, 255)  # #FFEB3B
SHADOW_COLOR = (0, 0, 0, 252)
SHADOW_BLUR = 4
SHADOW_OFFSET = (2, 2)

ADMIN_JPEG_QUALITY = 90
USER_JPEG_QUALITY = 95


class RenderOutcome(Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class RenderedPoster:
    content: bytes = b""
    mime_type: str = "image/jpeg"
    status: RenderOutcome = RenderOutcome.SUCCESS
    error: Optional[str] = None
    layers: List[str] = field(default_factory=list)
    name_font_size: Optional[int] = None
    status_font_size: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == RenderOutcome.SUCCESS

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.content, self.mime_type) if self.content else ""


@dataclass(frozen=True)
class FontConfig:
    name_font_path: Optional[str] = None
    status_font_path: Optional[str] = None


@lru_cache(maxsize=None)
def warn_missing_asset(path: str) -> None:
    """Logs a missing poster asset once per path."""
    logger.warning(
        "Poster asset %s is missing; see data/README.md for the files to install", path
    )


@lru_cache(maxsize=128)
def load_font(path: Optional[str], size: int) -> ImageFont.FreeTypeFont:
    """
    Loads `path` at `size`, falling back to Pillow's bundled scalable font.

    The bundled font has no Devanagari glyphs, so Hindi text drawn with the
    fallback comes out as boxes.
    """
    if path and os.path.exists(path):
        if features.check_feature("raqm"):
            return ImageFont.truetype(path, size=size, layout_engine=ImageFont.LAYOUT_RAQM)
        return ImageFont.truetype(path, size=size)
    if path:
        warn_missing_asset(path)
    return ImageFont.load_default(size=size)


def fit_font_size(
    text: str,
    max_width: float,
    start_size: int,
    floor: int,
    step: int,
    measure: Callable[[str, int], float],
) -> int:
    """
    Shrinks a font size until `text` fits inside `max_width`.

    Starting at `start_size`, the size is decreased by `step` while the
    measured width exceeds `max_width` and the size is still above `floor`.
    Text is never wrapped or truncated, so at the floor it may still overflow.

    Args:
        text (str): The string to fit.
        max_width (float): Width bound in pixels.
        start_size (int): Initial font size.
        floor (int): Smallest size the loop may reach.
        step (int): Decrement per iteration.
        measure: Callable returning the rendered width of text at a size.

    Returns:
        int: The chosen font size.
    """
    size = start_size
    while size > floor and measure(text, size) > max_width:
        size = max(floor, size - step)
    return size


class PosterCompositor:
    """Flattens a template, a user photo and text into a shareable JPEG."""

    def __init__(
        self,
        fonts: FontConfig | None = None,
        admin_footer_path: Optional[str] = None,
        image_timeout: float = REQUEST_TIMEOUT,
    ):
        self.fonts = fonts or FontConfig()
        self.admin_footer_path = admin_footer_path
        self.image_timeout = image_timeout
        self._measure_canvas = ImageDraw.Draw(Image.new("RGBA", (1, 1)))

    def missing_assets(self) -> List[str]:
        """Configured font and footer paths that are not on disk."""
        configured = (
            self.fonts.name_font_path,
            self.fonts.status_font_path,
            self.admin_footer_path,
        )
        return [path for path in configured if path and not os.path.exists(path)]

    def _measure(self, font_path: Optional[str]) -> Callable[[str, int], float]:
        def measure(text: str, size: int) -> float:
            return self._measure_canvas.textlength(text, font=load_font(font_path, size))

        return measure

    def compose(
        self,
        background: ImageSource,
        overlay: UserOverlay,
        geometry: PosterGeometry,
        on_ready: Callable[[RenderedPoster], None],
        is_admin: bool = False,
    ) -> None:
        """
        Renders the poster and hands the result to `on_ready` exactly once,
        including when rendering fails.
        """
        try:
            poster = self.render(background, overlay, geometry, is_admin=is_admin)
        except Exception as e:
            logger.exception("Poster rendering crashed")
            poster = RenderedPoster(status=RenderOutcome.FAILED, error=str(e))
        on_ready(poster)

    def render(
        self,
        background: ImageSource,
        overlay: UserOverlay,
        geometry: PosterGeometry,
        is_admin: bool = False,
    ) -> RenderedPoster:
        loaded = load_trusted_image(background, timeout=self.image_timeout)
        if not loaded.ok:
            return RenderedPoster(
                status=RenderOutcome.FAILED,
                error=f"Background image failed to load: {loaded.error}",
            )

        canvas = loaded.image.resize((CANVAS_WIDTH, CANVAS_HEIGHT), Image.LANCZOS)
        poster = RenderedPoster(layers=["background"])

        if is_admin:
            if self._draw_admin_footer(canvas):
                poster.layers.append("footer")
            poster.content = _encode_jpeg(canvas, ADMIN_JPEG_QUALITY)
            return poster

        if overlay.photo is not None and self._draw_photo(canvas, overlay.photo, geometry):
            poster.layers.append("photo")

        max_width = geometry.name_x - TEXT_MARGIN
        name = overlay.display_name or ""
        name_size = fit_font_size(
            name,
            max_width,
            geometry.name_size,
            NAME_FONT_FLOOR,
            NAME_FONT_STEP,
            self._measure(self.fonts.name_font_path),
        )
        poster.name_font_size = name_size
        if name:
            canvas = self._draw_name(canvas, name, name_size, geometry)
            poster.layers.append("name")

        status = overlay.combined_status()
        if status:
            status_size = fit_font_size(
                status,
                max_width,
                round(name_size * STATUS_FONT_RATIO),
                STATUS_FONT_FLOOR,
                STATUS_FONT_STEP,
                self._measure(self.fonts.status_font_path),
            )
            poster.status_font_size = status_size
            draw = ImageDraw.Draw(canvas)
            draw.text(
                (geometry.name_x, geometry.name_y + geometry.desig_y_offset),
                status,
                fill=STATUS_COLOR,
                font=load_font(self.fonts.status_font_path, status_size),
                anchor="rm",
            )
            poster.layers.append("status")

        poster.content = _encode_jpeg(canvas, USER_JPEG_QUALITY)
        return poster

    def _draw_admin_footer(self, canvas: Image.Image) -> bool:
        if not self.admin_footer_path:
            return False
        footer = load_trusted_image(self.admin_footer_path, timeout=self.image_timeout)
        if not footer.ok:
            logger.warning("Admin footer unavailable, rendering without it")
            return False
        draw_width = canvas.width
        draw_height = round(draw_width * footer.image.height / footer.image.width)
        scaled = footer.image.resize((draw_width, draw_height), Image.LANCZOS)
        y = canvas.height - draw_height - FOOTER_BOTTOM_OFFSET
        canvas.alpha_composite(scaled, (0, y))
        return True

    def _draw_photo(
        self, canvas: Image.Image, photo: ImageSource, geometry: PosterGeometry
    ) -> bool:
        loaded = load_image(photo, timeout=self.image_timeout)
        if not loaded.ok:
            logger.warning("User photo unavailable, rendering without it")
            return False

        size = geometry.photo_size
        radius = size / PHOTO_RADIUS_DIVISOR
        picture = loaded.image.resize((size, size), Image.LANCZOS)
        mask = Image.new("L", (size, size), 0)
        ImageDraw.Draw(mask).rounded_rectangle(
            (0, 0, size - 1, size - 1), radius=radius, fill=255
        )
        canvas.paste(picture, (geometry.photo_x, geometry.photo_y), mask)

        # Stroke is centred on the clip outline, half inside and half outside.
        half = PHOTO_BORDER_WIDTH // 2
        ImageDraw.Draw(canvas).rounded_rectangle(
            (
                geometry.photo_x - half,
                geometry.photo_y - half,
                geometry.photo_x + size - 1 + half,
                geometry.photo_y + size - 1 + half,
            ),
            radius=radius + half,
            outline=(255, 255, 255, 255),
            width=PHOTO_BORDER_WIDTH,
        )
        return True

    def _draw_name(
        self, canvas: Image.Image, name: str, size: int, geometry: PosterGeometry
    ) -> Image.Image:
        font = load_font(self.fonts.name_font_path, size)
        shadow = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(shadow).text(
            (geometry.name_x + SHADOW_OFFSET[0], geometry.name_y + SHADOW_OFFSET[1]),
            name,
            fill=SHADOW_COLOR,
            font=font,
            anchor="rm",
        )
        # Canvas shadowBlur is roughly twice the gaussian sigma.
        shadow = shadow.filter(ImageFilter.GaussianBlur(SHADOW_BLUR / 2))
        canvas = Image.alpha_composite(canvas, shadow)
        ImageDraw.Draw(canvas).text(
            (geometry.name_x, geometry.name_y), name, fill=NAME_COLOR, font=font, anchor="rm"
        )
        return canvas


def _encode_jpeg(canvas: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    canvas.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def render_poster(
    background: ImageSource,
    overlay: UserOverlay,
    geometry: PosterGeometry | None = None,
    is_admin: bool = False,
    compositor: PosterCompositor | None = None,
) -> RenderedPoster:
    """Renders with a default compositor and returns the result directly."""
    compositor = compositor or PosterCompositor()
    return compositor.render(background, overlay, geometry or PosterGeometry(), is_admin=is_admin)


def compose_poster(
    background: ImageSource,
    overlay: UserOverlay,
    on_ready: Callable[[RenderedPoster], None],
    geometry: PosterGeometry | None = None,
    is_admin: bool = False,
    compositor: PosterCompositor | None = None,
) -> None:
    compositor = compositor or PosterCompositor()
    compositor.compose(
        background, overlay, geometry or PosterGeometry(), on_ready, is_admin=is_admin
    )

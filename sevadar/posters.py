"""
Glue between the API, the render worker and the poster compositor.

Render parameters are stored on the job as a plain dict so the worker can
rebuild the overlay without touching the profile again.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Iterable, Optional

from poster_pipeline.compositor import PosterCompositor, RenderedPoster
from poster_pipeline.templates import PosterCatalog, PosterTemplate
from sevadar.db import ProfileRecord
from shared.types import PosterGeometry, UserOverlay


def check_photo_source(
    photo: Optional[str],
    trusted_prefixes: Iterable[str] = (),
    avatar_url: Optional[str] = None,
) -> None:
    """
    Rejects photo sources a caller may not point the renderer at.

    Accepted are inline `data:` URIs, the caller's own stored avatar, and
    http(s) URLs under one of `trusted_prefixes`. Server paths and any other
    host are refused.

    Raises:
        ValueError: If the source is not acceptable.
    """
    if not photo or photo.startswith("data:") or photo == avatar_url:
        return
    if photo.startswith(("http://", "https://")) and any(
        prefix and photo.startswith(prefix) for prefix in trusted_prefixes
    ):
        return
    raise ValueError("Photo must be a data URI, your saved photo or a trusted image URL")


def render_params(
    profile: ProfileRecord,
    full_name: Optional[str] = None,
    designation: Optional[str] = None,
    village: Optional[str] = None,
    photo: Optional[str] = None,
    geometry: Optional[dict] = None,
) -> dict:
    """Per-render overrides layered over the profile's saved identity."""
    return {
        "full_name": profile.full_name if full_name is None else full_name,
        "designation": profile.designation if designation is None else designation,
        "village": profile.village if village is None else village,
        "photo": photo or profile.avatar_url,
        "geometry": geometry or asdict(PosterGeometry()),
        "is_admin": profile.is_admin,
    }


def overlay_from_params(params: dict) -> UserOverlay:
    return UserOverlay(
        display_name=params.get("full_name") or "",
        status_line=params.get("designation") or "",
        village_name=params.get("village") or "",
        photo=params.get("photo"),
    )


def geometry_from_params(params: dict) -> PosterGeometry:
    return PosterGeometry(**(params.get("geometry") or {}))


def render_template(
    compositor: PosterCompositor,
    catalog: PosterCatalog,
    template: PosterTemplate,
    params: dict,
) -> RenderedPoster:
    return compositor.render(
        catalog.image_source(template),
        overlay_from_params(params),
        geometry_from_params(params),
        is_admin=bool(params.get("is_admin")),
    )

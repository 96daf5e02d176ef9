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

import json
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from shared.types import PosterKind

logger = logging.getLogger(__name__)

CAMPAIGN_TIMEZONE = "Asia/Kolkata"
CATALOG_DATE_FORMAT = "%d-%m-%Y"
UPCOMING_LIMIT = 3


@dataclass(frozen=True)
class PosterTemplate:
    id: str
    title: str
    image: str
    kind: PosterKind
    date: Optional[str] = None
    priority: Optional[str] = None

    @property
    def calendar_date(self) -> Optional[date]:
        if not self.date:
            return None
        return datetime.strptime(self.date, CATALOG_DATE_FORMAT).date()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "image": self.image,
            "type": self.kind.value,
            "date": self.date,
            "priority": self.priority,
        }


def campaign_today(tz_name: str = CAMPAIGN_TIMEZONE) -> date:
    """Current calendar day in the campaign timezone, independent of server locale."""
    return datetime.now(ZoneInfo(tz_name)).date()


def _parse_template(raw: dict) -> PosterTemplate:
    return PosterTemplate(
        id=str(raw["id"]),
        title=raw.get("title", ""),
        image=raw["image"],
        kind=PosterKind(raw.get("type", PosterKind.GENERAL.value)),
        date=raw.get("date"),
        priority=raw.get("priority"),
    )


class PosterCatalog:
    """Read-only poster catalog backed by a JSON file."""

    def __init__(
        self,
        path: str,
        tz_name: str = CAMPAIGN_TIMEZONE,
        asset_dir: Optional[str] = None,
    ):
        self.path = path
        self.tz_name = tz_name
        self.asset_dir = asset_dir if asset_dir is not None else os.path.dirname(path)

    def all(self) -> List[PosterTemplate]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw_items = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Poster catalog unavailable at %s: %s", self.path, e)
            return []
        if not isinstance(raw_items, list):
            logger.warning("Poster catalog at %s is not a JSON list", self.path)
            return []

        templates: List[PosterTemplate] = []
        for raw in raw_items:
            try:
                templates.append(_parse_template(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed poster entry %r: %s", raw, e)
        return templates

    def get(self, poster_id: str) -> Optional[PosterTemplate]:
        return next((p for p in self.all() if p.id == poster_id), None)

    def todays(self, today: date | None = None) -> List[PosterTemplate]:
        today = today or campaign_today(self.tz_name)
        today_str = today.strftime(CATALOG_DATE_FORMAT)
        return [p for p in self.all() if p.date == today_str]

    def upcoming(
        self, today: date | None = None, limit: int = UPCOMING_LIMIT
    ) -> List[PosterTemplate]:
        """Dated posters strictly after today, nearest first."""
        today = today or campaign_today(self.tz_name)
        dated = []
        for poster in self.all():
            if poster.kind != PosterKind.DATED or not poster.date:
                continue
            try:
                poster_day = poster.calendar_date
            except ValueError:
                logger.warning("Poster %s has unparseable date %s", poster.id, poster.date)
                continue
            if poster_day > today:
                dated.append((poster_day, poster))
        dated.sort(key=lambda item: item[0])
        return [poster for _, poster in dated[:limit]]

    def general(self) -> List[PosterTemplate]:
        return [p for p in self.all() if p.kind == PosterKind.GENERAL]

    def image_source(self, template: PosterTemplate) -> str:
        """Resolves site-relative image paths against the asset directory."""
        if template.image.startswith(("http://", "https://", "data:")):
            return template.image
        return os.path.join(self.asset_dir, template.image.lstrip("/"))

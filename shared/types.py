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

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RenderStatus(Enum):
    WAITING = "WAITING"
    RENDERING = "RENDERING"
    SUCCESS = "SUCCESS"
    ERROR_IMAGE_LOAD = "ERROR_IMAGE_LOAD"
    ERROR = "ERROR"


class PointAction(Enum):
    DAILY_POSTER = "daily_poster"
    VOTE = "vote"
    QUIZ_CORRECT = "quiz_correct"
    LIKE = "like"
    SHARE = "share"
    COMMENT = "comment"
    ONBOARDING = "onboarding"


class AwardOutcome(Enum):
    AWARDED = "AWARDED"
    ALREADY_AWARDED = "ALREADY_AWARDED"
    INELIGIBLE = "INELIGIBLE"


class PosterKind(Enum):
    DATED = "dated"
    GENERAL = "general"


@dataclass(frozen=True)
class PosterGeometry:
    """Placement of the user layers on a 1080x1920 template."""

    photo_x: int = 545
    photo_y: int = 1391
    photo_size: int = 480
    name_x: int = 495
    name_y: int = 1555
    name_size: int = 78
    desig_y_offset: int = 65


@dataclass
class UserOverlay:
    display_name: str = ""
    status_line: str = ""
    village_name: str = ""
    photo: Optional[object] = None

    def combined_status(self) -> str:
        status = (self.status_line or "").strip()
        village = (self.village_name or "").strip()
        if status and village:
            return f"{status}, {village}"
        return status or village

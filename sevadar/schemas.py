"""
Pydantic schemas for the Sevadar FastAPI backend.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from poster_pipeline.compositor import CANVAS_HEIGHT, CANVAS_WIDTH

MAX_NAME_FONT_SIZE = 200


class ProfileResponse(BaseModel):
    id: str
    full_name: str
    village: str
    designation: str
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    points: int
    is_admin: bool
    setup_complete: bool
    last_poster_credit_day: Optional[str] = None
    rank: Optional[int] = None


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, max_length=120)
    village: Optional[str] = Field(None, max_length=120)
    designation: Optional[str] = Field(None, max_length=120)


class OnboardingRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    village: str = Field(..., min_length=1, max_length=120)
    designation: Optional[str] = Field(None, max_length=120)
    avatar_url: Optional[str] = None


class AwardResponse(BaseModel):
    outcome: str
    total: int
    amount: int = 0


class OnboardingResponse(BaseModel):
    profile: ProfileResponse
    award: AwardResponse


class CropAreaPayload(BaseModel):
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class PhotoUploadRequest(BaseModel):
    image: str = Field(..., description="Base64 data URI of the picked photo")
    crop: Optional[CropAreaPayload] = None


class PhotoUploadResponse(BaseModel):
    avatar_url: str


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class StatusResponse(BaseModel):
    status: str


class TransliterateRequest(BaseModel):
    text: str = Field(..., max_length=200)


class TransliterateResponse(BaseModel):
    text: str


class PosterTemplateResponse(BaseModel):
    id: str
    title: str
    image: str
    type: str
    date: Optional[str] = None
    priority: Optional[str] = None


class PosterListResponse(BaseModel):
    posters: List[PosterTemplateResponse]


class GeometryPayload(BaseModel):
    """Layout on the 1080x1920 design canvas."""

    photo_x: int = Field(545, ge=0, le=CANVAS_WIDTH)
    photo_y: int = Field(1391, ge=0, le=CANVAS_HEIGHT)
    photo_size: int = Field(480, gt=0, le=CANVAS_WIDTH)
    name_x: int = Field(495, ge=0, le=CANVAS_WIDTH)
    name_y: int = Field(1555, ge=0, le=CANVAS_HEIGHT)
    name_size: int = Field(78, gt=0, le=MAX_NAME_FONT_SIZE)
    desig_y_offset: int = Field(65, ge=0, le=CANVAS_HEIGHT)


class RenderRequest(BaseModel):
    """Overrides for the caller's profile fields; omitted values come from the profile."""

    full_name: Optional[str] = None
    designation: Optional[str] = None
    village: Optional[str] = None
    photo: Optional[str] = Field(None, description="URL or data URI; defaults to avatar")
    geometry: GeometryPayload = Field(default_factory=GeometryPayload)


class PreviewResponse(BaseModel):
    data_uri: str
    layers: List[str]
    name_font_size: Optional[int] = None
    status_font_size: Optional[int] = None


class RenderJobResponse(BaseModel):
    job_id: str
    template_id: str
    status: str
    stage: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None


class LeaderboardEntryResponse(BaseModel):
    user_id: str
    display_name: str
    village: str
    avatar_url: Optional[str] = None
    points: int
    rank: int


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntryResponse]
    my_rank: Optional[int] = None
    my_points: Optional[int] = None


class PollResponse(BaseModel):
    id: str
    question: str
    options: List[str]
    votes: Optional[List[int]] = None
    total_votes: Optional[int] = None
    my_choice: Optional[int] = None
    is_active: bool = True


class VoteRequest(BaseModel):
    option_index: int = Field(..., ge=0)


class VoteResponse(BaseModel):
    poll_id: str
    already_voted: bool
    selected_index: Optional[int]
    votes: List[int]
    points_awarded: int
    points_total: int


class QuizResponse(BaseModel):
    id: str
    date: str
    question: str
    options: List[str]
    points: int
    correct_index: Optional[int] = None
    my_answer: Optional[int] = None
    is_correct: Optional[bool] = None


class QuizAnswerRequest(BaseModel):
    selected_index: int = Field(..., ge=0)


class QuizAnswerResponse(BaseModel):
    quiz_id: str
    already_answered: bool
    selected_index: Optional[int]
    is_correct: Optional[bool]
    correct_index: int
    points_awarded: int
    points_total: int


class FeedPostResponse(BaseModel):
    id: str
    type: str
    title: str
    description: str = ""
    url: str = ""
    images: List[str] = Field(default_factory=list)
    likes: int = 0
    liked: bool = False


class FeedListResponse(BaseModel):
    posts: List[FeedPostResponse]


class LikeResponse(BaseModel):
    post_id: str
    already_liked: bool
    likes: int
    points_awarded: int
    points_total: int


class CommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: float


class CommentCreatedResponse(BaseModel):
    comment: CommentResponse
    award: AwardResponse


class CommentListResponse(BaseModel):
    comments: List[CommentResponse]


class MessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class MessageResponse(BaseModel):
    id: str
    user_id: str
    content: str
    status: str
    admin_reply: Optional[str] = None
    created_at: float


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]


class MessageUpdateRequest(BaseModel):
    status: Optional[Literal["new", "read", "replied"]] = None
    admin_reply: Optional[str] = Field(None, max_length=2000)


class UserListResponse(BaseModel):
    users: List[ProfileResponse]


class PollCreateRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    options: List[str]

    @field_validator("options")
    @classmethod
    def _at_least_two_options(cls, value: List[str]) -> List[str]:
        cleaned = [option.strip() for option in value if option and option.strip()]
        if len(cleaned) < 2:
            raise ValueError("A poll needs at least 2 non-empty options")
        return cleaned


class PollListResponse(BaseModel):
    polls: List[PollResponse]


class QuizUpsertRequest(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    question: str = Field(..., min_length=1, max_length=500)
    options: List[str] = Field(..., min_length=2)
    correct_index: int = Field(..., ge=0)
    points: int = Field(5, ge=0)

    @field_validator("correct_index")
    @classmethod
    def _correct_index_in_range(cls, value: int, info) -> int:
        options = info.data.get("options") or []
        if value >= len(options):
            raise ValueError("correct_index must point at one of the options")
        return value


class QuizListResponse(BaseModel):
    quizzes: List[QuizResponse]


class FeedPostCreateRequest(BaseModel):
    type: Literal["image", "video"]
    title: str = Field(..., min_length=1, max_length=300)
    description: str = ""
    url: str = ""
    images: List[str] = Field(default_factory=list)


class DailyNotificationResponse(BaseModel):
    message: str
    kind: Optional[str] = None
    sent: int = 0
    failed: int = 0

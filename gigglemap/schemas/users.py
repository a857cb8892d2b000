from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gigglemap.repositories.interfaces import UserRecord
from gigglemap.services.avatars import optimized_avatar_url

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- requests ---


class RegisterRequest(_CamelModel):
    username: str = Field(min_length=3, max_length=64)
    email: str = Field(pattern=_EMAIL_PATTERN, max_length=254)
    password: str = Field(min_length=6, max_length=128)
    full_name: str | None = Field(default=None, max_length=200)


class LoginRequest(_CamelModel):
    email_or_username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdateRequest(_CamelModel):
    full_name: str | None = None
    bio: str | None = None
    website: str | None = None
    instagram: str | None = None
    twitter: str | None = None
    facebook: str | None = None
    city: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class StatsUpdateRequest(_CamelModel):
    stat_type: str = Field(description="storyCount | likeCount | commentCount")
    increment: int = Field(default=1, description="May be negative; counters never drop below 0")


# --- responses ---


class UserSummary(_CamelModel):
    id: int
    username: str
    full_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    city: str | None = None
    country: str | None = None
    story_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    coordinates: str | None = Field(default=None, description="WKT point or null")

    @classmethod
    def from_record(cls, user: UserRecord, *, avatar_size: int = 100) -> UserSummary:
        return cls(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            avatar_url=optimized_avatar_url(user.avatar_url, width=avatar_size, height=avatar_size),
            bio=user.bio,
            city=user.city,
            country=user.country,
            story_count=user.story_count,
            like_count=user.like_count,
            comment_count=user.comment_count,
            coordinates=user.point.to_wkt() if user.point else None,
        )


class UserProfile(UserSummary):
    website: str | None = None
    instagram: str | None = None
    twitter: str | None = None
    facebook: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, user: UserRecord, *, avatar_size: int = 200) -> UserProfile:
        base = UserSummary.from_record(user, avatar_size=avatar_size).model_dump()
        return cls(
            **base,
            website=user.website,
            instagram=user.instagram,
            twitter=user.twitter,
            facebook=user.facebook,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserPrivateProfile(UserProfile):
    email: str

    @classmethod
    def from_record(cls, user: UserRecord, *, avatar_size: int = 200) -> UserPrivateProfile:
        base = UserProfile.from_record(user, avatar_size=avatar_size).model_dump()
        return cls(**base, email=user.email)


class NearbyUser(UserSummary):
    distance: int = Field(description="Distance from the center, rounded to whole meters")


class Center(BaseModel):
    latitude: float
    longitude: float


class NearbyUsersResponse(BaseModel):
    center: Center
    radius: float
    count: int
    users: list[NearbyUser]


class UserSearchResponse(BaseModel):
    query: str
    count: int
    users: list[UserSummary]


class RegisterResponse(BaseModel):
    message: str
    user: UserPrivateProfile


class LoginResponse(BaseModel):
    message: str
    user: UserPrivateProfile
    token: str


class ProfileResponse(BaseModel):
    message: str
    user: UserProfile


class AvatarResponse(_CamelModel):
    message: str
    user: UserProfile
    avatar_url: str | None = None


class EngagementResponse(_CamelModel):
    id: int
    username: str
    story_count: int
    like_count: int
    comment_count: int
    created_at: datetime | None = None

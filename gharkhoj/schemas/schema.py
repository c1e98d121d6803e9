from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from core.get_db import Base
from core.settings import settings
from models.enums import (
    AppRole,
    BathroomType,
    GenderPreference,
    InquiryStatus,
    PropertyStatus,
    RoomType,
)
from models.utils import normalize_phone, ordered_images, thumbnail_url


def _orm_fields(obj: Any, fields) -> dict:
    # Only copy what is already loaded; never trigger a lazy load.
    return {name: obj.__dict__[name] for name in fields if name in obj.__dict__}


class SignUpIn(BaseModel):
    email: EmailStr
    password: str = Field(
        ..., json_schema_extra={"type": "string", "format": "password"}
    )
    full_name: str = Field(..., min_length=1, max_length=255)
    role: AppRole = AppRole.TENANT

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Full name cannot be empty.")
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return value

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: AppRole) -> AppRole:
        if value == AppRole.ADMIN:
            raise ValueError("Admin accounts cannot be self-registered")
        return value


class RefreshIn(BaseModel):
    refresh_token: Optional[str] = None


class SignInIn(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class PasswordUpdateIn(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        return value


class UserOut(BaseModel):
    id: uuid.UUID
    email: str
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProfileOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MeOut(BaseModel):
    user: UserOut
    role: Optional[AppRole] = None
    profile: Optional[ProfileOut] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        try:
            return normalize_phone(value)
        except Exception:
            raise ValueError("Invalid phone number format. Use e.g. +9779812345678")


class UploadedImageIn(BaseModel):
    secure_url: str = Field(..., max_length=512)
    public_id: Optional[str] = Field(None, max_length=255)

    @field_validator("secure_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError("Image URL must be an https URL")
        return value


class ImageUploadRequest(BaseModel):
    count: int = Field(1, ge=1, le=settings.MAX_PROPERTY_IMAGES)
    file_size: Optional[int] = Field(None, ge=0)
    file_name: Optional[str] = None


class ProfileStatsOut(BaseModel):
    properties: int = 0
    conversations: int = 0
    favorites: int = 0
    inquiries: int = 0


class PropertyImageOut(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    image_url: str
    display_order: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PropertyFields(BaseModel):
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    area: Optional[str] = Field(None, max_length=120)
    deposit: Optional[float] = Field(None, ge=0)
    maintenance_fee: Optional[float] = Field(None, ge=0)
    room_type: Optional[RoomType] = None
    furnished: Optional[bool] = None
    parking: Optional[bool] = None
    internet: Optional[bool] = None
    pets_allowed: Optional[bool] = None
    water_available: Optional[bool] = None
    bathroom_type: Optional[BathroomType] = None
    house_rules: Optional[str] = None
    available_from: Optional[date] = None
    gender_preference: Optional[GenderPreference] = None
    beds_per_room: Optional[int] = Field(None, ge=1)
    common_area: Optional[bool] = None
    curfew_time: Optional[str] = Field(None, max_length=16)
    locker_available: Optional[bool] = None
    meals_included: Optional[bool] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("description", "address", "area", "house_rules", "curfew_time")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class PropertyCreate(PropertyFields):
    title: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    price: float = Field(..., gt=0)
    room_type: RoomType = RoomType.SINGLE
    is_vacant: bool = True

    @field_validator("title", "city")
    @classmethod
    def required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("This field is required")
        return value


class PropertyUpdate(PropertyFields):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=120)
    price: Optional[float] = Field(None, gt=0)

    model_config = {"extra": "forbid"}


class VacancyUpdate(BaseModel):
    is_vacant: bool


class StatusUpdate(BaseModel):
    status: PropertyStatus

    @field_validator("status")
    @classmethod
    def decided_only(cls, value: PropertyStatus) -> PropertyStatus:
        if value == PropertyStatus.PENDING:
            raise ValueError("Status must be approved or rejected")
        return value


class PropertyCardOut(BaseModel):
    id: uuid.UUID
    landlord_id: uuid.UUID
    title: str
    city: str
    area: Optional[str] = None
    address: Optional[str] = None
    price: float
    room_type: RoomType
    status: PropertyStatus
    is_vacant: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    thumbnail_url: Optional[str] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def attach_thumbnail(cls, data: Any) -> Any:
        if isinstance(data, Base):
            values = _orm_fields(data, cls.model_fields)
            values["thumbnail_url"] = thumbnail_url(data.__dict__.get("images"))
            return values
        return data


class PropertyOut(PropertyCardOut, PropertyFields):
    room_type: RoomType
    updated_at: Optional[datetime] = None
    images: List[PropertyImageOut] = []

    @model_validator(mode="before")
    @classmethod
    def attach_thumbnail(cls, data: Any) -> Any:
        if isinstance(data, Base):
            images = ordered_images(data.__dict__.get("images"))
            values = _orm_fields(data, cls.model_fields)
            values["images"] = images
            values["thumbnail_url"] = images[0].image_url if images else None
            return values
        return data


class DashboardPropertyOut(PropertyCardOut):
    inquiry_count: int = 0


class DashboardTotals(BaseModel):
    total: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    vacant: int = 0
    inquiries: int = 0


class LandlordDashboardOut(BaseModel):
    properties: List[DashboardPropertyOut]
    totals: DashboardTotals


class SiteStatsOut(BaseModel):
    properties: int
    users: int


class SearchResultOut(BaseModel):
    items: List[PropertyCardOut]
    total: int
    page: Optional[int] = None
    per_page: Optional[int] = None


class PublicProfileOut(BaseModel):
    user_id: uuid.UUID
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    member_since: Optional[datetime] = None
    role: Optional[AppRole] = None
    properties: List[PropertyCardOut] = []
    conversation_count: int = 0


class FavoriteOut(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    created_at: Optional[datetime] = None
    property: Optional[PropertyCardOut] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def loaded_only(cls, data: Any) -> Any:
        if isinstance(data, Base):
            return _orm_fields(data, cls.model_fields)
        return data


class FavoriteToggleOut(BaseModel):
    favorited: bool
    favorite_id: Optional[uuid.UUID] = None


class InquiryCreate(BaseModel):
    property_id: uuid.UUID
    message: Optional[str] = Field(None, max_length=2000)
    preferred_move_in: Optional[date] = None

    @field_validator("message")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class InquiryOut(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    tenant_id: uuid.UUID
    message: Optional[str] = None
    preferred_move_in: Optional[date] = None
    status: InquiryStatus
    created_at: Optional[datetime] = None
    property: Optional[PropertyCardOut] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def loaded_only(cls, data: Any) -> Any:
        if isinstance(data, Base):
            return _orm_fields(data, cls.model_fields)
        return data


class ConversationStartIn(BaseModel):
    property_id: uuid.UUID
    tenant_id: Optional[uuid.UUID] = None


class ArchiveIn(BaseModel):
    archived: bool = True


class ConversationOut(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    tenant_id: uuid.UUID
    landlord_id: uuid.UUID
    archived_by_tenant: bool = False
    archived_by_landlord: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ConversationSummaryOut(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    tenant_id: uuid.UUID
    landlord_id: uuid.UUID
    other_user_id: uuid.UUID
    other_name: str
    property_title: Optional[str] = None
    property_city: Optional[str] = None
    property_thumbnail: Optional[str] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    archived: bool = False
    updated_at: Optional[datetime] = None


class MessageCreate(BaseModel):
    content: str = Field(..., max_length=4000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message cannot be empty")
        return value


class MessageOut(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCountOut(BaseModel):
    count: int


class AdminUserOut(BaseModel):
    user_id: uuid.UUID
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str = "unknown"
    created_at: Optional[datetime] = None


class RoleUpdateIn(BaseModel):
    role: AppRole


class AnalyticsOut(BaseModel):
    total_properties: int
    properties_by_status: dict[str, int]
    total_users: int
    users_by_role: dict[str, int]
    recent_properties: List[PropertyCardOut]

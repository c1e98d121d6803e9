import uuid
from datetime import date, datetime
from typing import List, Optional

from bcrypt import checkpw, gensalt, hashpw
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.get_db import Base

from .enums import (
    AppRole,
    BathroomType,
    GenderPreference,
    InquiryStatus,
    PropertyStatus,
    RoomType,
    enum_values,
)
from .utils import utcnow


def _enum(enum_cls, name: str):
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=enum_values,
        validate_strings=True,
    )


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_sign_in_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    profile: Mapped[Optional["Profile"]] = relationship(
        "Profile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    role_row: Mapped[Optional["UserRole"]] = relationship(
        "UserRole", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def set_password(self, raw_password: str):
        self.hashed_password = hashpw(raw_password.encode("utf-8"), gensalt()).decode(
            "utf-8"
        )

    def check_password(self, raw_password: str) -> bool:
        return checkpw(
            raw_password.encode("utf-8"), self.hashed_password.encode("utf-8")
        )

    def normalize(self) -> None:
        self.email = self.email.strip().lower()

    def __repr__(self):
        return f"<User {self.email} ({self.id})>"


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    avatar_public_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="profile")


class UserRole(Base):
    __tablename__ = "user_roles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    role: Mapped[AppRole] = mapped_column(_enum(AppRole, "app_role"), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="role_row")


class Property(Base):
    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_status_vacant", "status", "is_vacant"),
        Index("ix_properties_landlord_created", "landlord_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    landlord_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    area: Mapped[Optional[str]] = mapped_column(String(120))

    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    deposit: Mapped[Optional[float]] = mapped_column(
        Numeric(12, 2, asdecimal=False), default=0
    )
    maintenance_fee: Mapped[Optional[float]] = mapped_column(
        Numeric(12, 2, asdecimal=False), default=0
    )

    room_type: Mapped[RoomType] = mapped_column(
        _enum(RoomType, "room_type"), nullable=False, default=RoomType.SINGLE
    )
    furnished: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    parking: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    internet: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    pets_allowed: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    water_available: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    bathroom_type: Mapped[Optional[BathroomType]] = mapped_column(
        _enum(BathroomType, "bathroom_type"), default=BathroomType.SHARED
    )
    house_rules: Mapped[Optional[str]] = mapped_column(Text)
    available_from: Mapped[Optional[date]] = mapped_column(Date)

    gender_preference: Mapped[Optional[GenderPreference]] = mapped_column(
        _enum(GenderPreference, "gender_preference"), nullable=True
    )
    beds_per_room: Mapped[Optional[int]] = mapped_column(Integer)
    common_area: Mapped[Optional[bool]] = mapped_column(Boolean)
    curfew_time: Mapped[Optional[str]] = mapped_column(String(16))
    locker_available: Mapped[Optional[bool]] = mapped_column(Boolean)
    meals_included: Mapped[Optional[bool]] = mapped_column(Boolean)

    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)

    is_vacant: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[PropertyStatus] = mapped_column(
        _enum(PropertyStatus, "property_status"),
        default=PropertyStatus.PENDING,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    images: Mapped[List["PropertyImage"]] = relationship(
        "PropertyImage",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by=lambda: [PropertyImage.display_order, PropertyImage.created_at],
    )


class PropertyImage(Base):
    __tablename__ = "property_images"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    image_url: Mapped[str] = mapped_column(String(512), nullable=False)
    public_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    property: Mapped["Property"] = relationship("Property", back_populates="images")

    def __repr__(self):
        return f"<PropertyImage property={self.property_id} order={self.display_order}>"


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_favorite_user_property"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    property: Mapped["Property"] = relationship("Property")


class Inquiry(Base):
    __tablename__ = "inquiries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    message: Mapped[Optional[str]] = mapped_column(Text)
    preferred_move_in: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[InquiryStatus] = mapped_column(
        _enum(InquiryStatus, "inquiry_status"),
        default=InquiryStatus.OPEN,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    property: Mapped["Property"] = relationship("Property")


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("property_id", "tenant_id", name="uq_property_tenant"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    landlord_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    archived_by_tenant: Mapped[bool] = mapped_column(Boolean, default=False)
    archived_by_landlord: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    property: Mapped["Property"] = relationship("Property")

    def is_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.tenant_id, self.landlord_id)

    def counterpart_of(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.landlord_id if user_id == self.tenant_id else self.tenant_id

    def is_archived_for(self, user_id: uuid.UUID) -> bool:
        if user_id == self.tenant_id:
            return bool(self.archived_by_tenant)
        return bool(self.archived_by_landlord)


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_unread", "conversation_id", "is_read", "sender_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": str(self.id),
            "conversation_id": str(self.conversation_id),
            "sender_id": str(self.sender_id),
            "content": self.content,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class BlacklistedToken(Base):
    __tablename__ = "blacklisted_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    token: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    blacklisted_on: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

"""Domain models for PastCare Core.

This module defines the SQLAlchemy ORM models for the membership
backend. Every tenant-owned table carries a church_id column.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# =============================================================================
# ENUMS
# =============================================================================


class MemberStatus(str):
    """Member status values."""

    VISITOR = "visitor"
    FIRST_TIMER = "first_timer"
    REGULAR = "regular"
    MEMBER = "member"
    LEADER = "leader"
    INACTIVE = "inactive"


class Sex(str):
    """Member sex values."""

    MALE = "male"
    FEMALE = "female"


class MaritalStatus(str):
    """Member marital status values."""

    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


# =============================================================================
# TENANCY AND AUTH
# =============================================================================


class Church(Base):
    """A tenant. Members and saved searches belong to exactly one church."""

    __tablename__ = "churches"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    # Relationships
    users: Mapped[list["User"]] = relationship(back_populates="church")
    members: Mapped[list["Member"]] = relationship(back_populates="church")


class User(Base):
    """A staff user of a church."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    church_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("churches.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("idx_users_church", "church_id"),)

    # Relationships
    church: Mapped["Church"] = relationship(back_populates="users")
    sessions: Mapped[list["UserSession"]] = relationship(back_populates="user")


class UserSession(Base):
    """Server-side session store."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # UUID
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="sessions")


# =============================================================================
# MEMBERSHIP
# =============================================================================


class Location(Base):
    """A resolved address shared by members."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    suburb: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    district: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    full_address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Relationships
    members: Mapped[list["Member"]] = relationship(back_populates="location")


member_fellowships = Table(
    "member_fellowships",
    Base.metadata,
    Column(
        "member_id",
        BigInteger,
        ForeignKey("members.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "fellowship_id",
        BigInteger,
        ForeignKey("fellowships.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Fellowship(Base):
    """A small group inside a church."""

    __tablename__ = "fellowships"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    church_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("churches.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_fellowships_church", "church_id"),)

    # Relationships
    members: Mapped[list["Member"]] = relationship(
        secondary=member_fellowships, back_populates="fellowships"
    )


class Member(Base):
    """A church member. The subject of the advanced search."""

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    church_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("churches.id"), nullable=False
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    sex: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    marital_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[Optional[str]] = mapped_column(
        String(32), nullable=True, default=MemberStatus.VISITOR
    )
    member_since: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_verified: Mapped[Optional[bool]] = mapped_column(
        Boolean, nullable=True, default=False
    )
    profile_completeness: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True, default=0
    )

    location_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("locations.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_members_church", "church_id"),
        Index("idx_members_church_name", "church_id", "last_name", "first_name"),
        Index("idx_members_church_status", "church_id", "status"),
    )

    # Relationships
    church: Mapped["Church"] = relationship(back_populates="members")
    location: Mapped[Optional["Location"]] = relationship(back_populates="members")
    tags: Mapped[list["MemberTag"]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )
    fellowships: Mapped[list["Fellowship"]] = relationship(
        secondary=member_fellowships, back_populates="members"
    )

    @property
    def tag_names(self) -> list[str]:
        return sorted(tag.tag for tag in self.tags)

    @property
    def fellowship_ids(self) -> list[int]:
        return sorted(fellowship.id for fellowship in self.fellowships)


class MemberTag(Base):
    """A free-form label on a member. Stored lower-case."""

    __tablename__ = "member_tags"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    tag: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("member_id", "tag", name="uq_member_tag"),
        Index("idx_member_tags_tag", "tag"),
    )

    # Relationships
    member: Mapped["Member"] = relationship(back_populates="tags")


# =============================================================================
# SAVED SEARCHES
# =============================================================================


class SavedSearch(Base):
    """A named advanced search, private to its creator or public to the church."""

    __tablename__ = "saved_searches"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    church_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("churches.id"), nullable=False
    )
    created_by_user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    search_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Serialized AdvancedSearchRequest (JSON)
    search_criteria: Mapped[str] = mapped_column(Text, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_dynamic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    last_executed: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_result_count: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_saved_searches_church", "church_id"),
        Index("idx_saved_searches_creator", "created_by_user_id"),
        Index("idx_saved_searches_public", "church_id", "is_public"),
    )

    # Relationships
    created_by: Mapped["User"] = relationship()

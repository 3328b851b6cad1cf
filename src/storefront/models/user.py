from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from storefront.db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
PK = BigInteger().with_variant(Integer(), "sqlite")


class User(Base):
    """
    A site account, customer or admin.

    New accounts start inactive with an activation code; the code is kept
    after activation so a second click can be told apart from a bad link.
    """

    __tablename__ = "users"

    user_id = Column(PK, primary_key=True, autoincrement=True)
    username = Column(String(20), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="customer", server_default="customer")
    is_active = Column(Boolean, nullable=False, default=False, server_default="0")
    activation_code = Column(String(64), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'customer')", name="ck_users_role"),
    )

    profile = relationship(
        "UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User user_id={self.user_id} username={self.username!r}>"


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id = Column(
        PK, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    profile_image_filename = Column(String(255), nullable=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    user = relationship("User", back_populates="profile")


class PasswordReset(Base):
    """Single-use reset link. Only honoured while not completed and unexpired."""

    __tablename__ = "password_resets"

    reset_id = Column(PK, primary_key=True, autoincrement=True)
    user_id = Column(PK, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    completed = Column(Boolean, nullable=False, default=False, server_default="0")
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())


class RememberMeToken(Base):
    """bcrypt hash of the raw token held in the remember_me cookie."""

    __tablename__ = "remember_me_tokens"

    token_id = Column(PK, primary_key=True, autoincrement=True)
    user_id = Column(PK, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())


class AdminActivityLog(Base):
    __tablename__ = "admin_activity_log"

    log_id = Column(PK, primary_key=True, autoincrement=True)
    admin_id = Column(PK, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)
    table_name = Column(String(50), nullable=False)
    record_id = Column(PK, nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, Boolean, JSON, ForeignKey, DateTime
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String)
    image = Column(String) # Avatar URL from the Steam profile
    steam_id = Column(String, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    build_orders = relationship("BuildOrder", back_populates="author", cascade="all, delete-orphan")
    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")


class AuthSession(Base):
    __tablename__ = "sessions"
    id = Column(String, primary_key=True, default=new_id)
    token_hash = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="sessions")


class BuildOrder(Base):
    __tablename__ = "build_orders"
    id = Column(String, primary_key=True, default=new_id)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    civilization = Column(String, nullable=False)
    map_type = Column(JSON, nullable=False, default=list)
    is_public = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    author_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    author = relationship("User", back_populates="build_orders")
    # Display and navigation order; 'order' is not enforced unique
    steps = relationship(
        "Step", back_populates="build_order",
        order_by="Step.order", cascade="all, delete-orphan",
    )


class Step(Base):
    __tablename__ = "steps"
    id = Column(String, primary_key=True, default=new_id)
    build_order_id = Column(String, ForeignKey("build_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    order = Column(Integer, nullable=False)
    time_minutes = Column(Integer, nullable=False)
    time_seconds = Column(Integer, nullable=False)
    villager_count = Column(Integer, nullable=False)
    action = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    resources = Column(JSON, nullable=False) # {wood, food, gold, stone}

    build_order = relationship("BuildOrder", back_populates="steps")

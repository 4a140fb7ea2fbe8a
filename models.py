"""SQLAlchemy models backing the key/value game store."""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class KVEntry(Base):
    """Plain key -> JSON value (sessions, teams, activities, decisions)."""
    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class KVSetMember(Base):
    """Unordered set membership, e.g. the teams of a session."""
    __tablename__ = "kv_set_members"
    __table_args__ = (UniqueConstraint("key", "member", name="uq_kv_set_member"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), nullable=False, index=True)
    member = Column(String(255), nullable=False)


class KVListItem(Base):
    """Append-only list item; ``position`` keeps insertion order per key."""
    __tablename__ = "kv_list_items"
    __table_args__ = (UniqueConstraint("key", "position", name="uq_kv_list_position"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    value = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

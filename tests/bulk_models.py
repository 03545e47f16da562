"""Mapped record types shared by the test suite."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Table, Uuid, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Widget(Base):
    """Integer identity key; ``name`` is stored in column ``widget_name``."""

    __tablename__ = "widgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column("widget_name", String(50))
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    parts: Mapped[list["Part"]] = relationship(back_populates="widget")


class Part(Base):
    __tablename__ = "parts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    widget_id: Mapped[Optional[int]] = mapped_column(ForeignKey("widgets.id"), nullable=True)
    label: Mapped[str] = mapped_column(String(50))

    widget: Mapped[Optional[Widget]] = relationship(back_populates="parts")


class Tag(Base):
    """Natural string key, no identity."""

    __tablename__ = "tags"

    code: Mapped[str] = mapped_column(String(20), primary_key=True)
    label: Mapped[str] = mapped_column(String(50))


class Token(Base):
    """UUID key generated by the database when absent."""

    __tablename__ = "tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        server_default=text("(lower(hex(randomblob(16))))"),
    )
    label: Mapped[str] = mapped_column(String(50))


class Pair(Base):
    """Composite key without identity."""

    __tablename__ = "pairs"

    left_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    right_code: Mapped[str] = mapped_column(String(10), primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class Label(Base):
    """Only key columns, so nothing is updatable."""

    __tablename__ = "labels"

    code: Mapped[str] = mapped_column(String(20), primary_key=True)


events = Table(
    "events",
    Base.metadata,
    Column("name", String(50)),
    Column("value", Integer),
)

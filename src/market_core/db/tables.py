"""SQLAlchemy models for the market's durable storage."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Float, Integer, SmallInteger, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ConstantORM(Base):
    """Key/value constants; holds the applied schema version."""

    __tablename__ = "constants"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text(), nullable=False)


class ProductORM(Base):
    __tablename__ = "product"

    alias: Mapped[str] = mapped_column(String(255), primary_key=True)
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    variant: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    demand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Float(precision=53), nullable=False, default=0.0)


class ActorIdentityORM(Base):
    """Last known display name for an actor id."""

    __tablename__ = "actor_identity"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class TransactionORM(Base):
    """Append-only ledger. Rows are never updated or deleted."""

    __tablename__ = "transaction"

    # Surrogate key; fixes insertion order
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_uuid: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    item_alias: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float(precision=53), nullable=False, default=0.0)

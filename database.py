"""SQLAlchemy-powered data layer for the auction site."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Mapping, Optional, Sequence

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    and_,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    sessionmaker,
)
from sqlalchemy.sql import Select

from config import Config
from security import decrypt_sensitive_value, encrypt_sensitive_value

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# SQLAlchemy setup
# --------------------------------------------------------------------------------------

DATABASE_URL = Config.DATABASE_URL
engine = create_engine(
    DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
# Row ids above this do not fit an SQLite INTEGER and cannot exist.
MAX_ROW_ID = 2**63 - 1

CATEGORY_SEED = [
    ("Доски и лыжи", "boards"),
    ("Крепления", "attachment"),
    ("Ботинки", "boots"),
    ("Одежда", "clothing"),
    ("Инструменты", "tools"),
    ("Разное", "other"),
]


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    contacts: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    lots: Mapped[list["Lot"]] = relationship("Lot", back_populates="author", foreign_keys="Lot.author_id")
    bids: Mapped[list["Bid"]] = relationship("Bid", back_populates="user", cascade="all, delete-orphan")


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    lots: Mapped[list["Lot"]] = relationship("Lot", back_populates="category")


class Lot(Base):
    __tablename__ = "lots"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    image_path: Mapped[str] = mapped_column(String, nullable=False)
    start_price: Mapped[int] = mapped_column(Integer, nullable=False)
    bid_step: Mapped[int] = mapped_column(Integer, nullable=False)
    ends_on: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), nullable=False)
    winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    author: Mapped[User] = relationship("User", back_populates="lots", foreign_keys=[author_id])
    category: Mapped[Category] = relationship("Category", back_populates="lots")
    bids: Mapped[list["Bid"]] = relationship("Bid", back_populates="lot", cascade="all, delete-orphan")


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[int] = mapped_column(primary_key=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lots.id", ondelete="CASCADE"), nullable=False)

    user: Mapped[User] = relationship("User", back_populates="bids")
    lot: Mapped[Lot] = relationship("Lot", back_populates="bids")


# --------------------------------------------------------------------------------------
# Session and raw query helpers
# --------------------------------------------------------------------------------------


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def fetch_one(sql: str, params: Sequence[object] = ()) -> Optional[dict[str, object]]:
    """Run a ``?``-parameterized query and return the first row, or None."""

    with engine.connect() as connection:
        row = connection.exec_driver_sql(sql, tuple(params)).mappings().first()
        return dict(row) if row else None


def fetch_all(sql: str, params: Sequence[object] = ()) -> list[dict[str, object]]:
    """Run a ``?``-parameterized query and return every row."""

    with engine.connect() as connection:
        rows = connection.exec_driver_sql(sql, tuple(params)).mappings().all()
        return [dict(row) for row in rows]


# --------------------------------------------------------------------------------------
# Serialization helpers
# --------------------------------------------------------------------------------------


def _serialize_user(user: Optional[User]) -> Optional[dict[str, object]]:
    if not user:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "password_hash": user.password_hash,
        "contacts": decrypt_sensitive_value(user.contacts),
        "created_at": user.created_at,
    }


# --------------------------------------------------------------------------------------
# Initialization and seeding
# --------------------------------------------------------------------------------------


def init_db() -> None:
    """Create tables and seed the category list."""

    Base.metadata.create_all(bind=engine)
    seed_data()


def seed_data() -> None:
    """Insert the fixed lot categories when the table is empty."""

    with session_scope() as session:
        category_count = session.scalar(select(func.count(Category.id))) or 0
        if category_count:
            return
        for title, code in CATEGORY_SEED:
            session.add(Category(title=title, code=code))


# --------------------------------------------------------------------------------------
# Users
# --------------------------------------------------------------------------------------


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def email_exists(email: str) -> bool:
    """Return True when an account is already registered with ``email``."""

    return fetch_one("SELECT id FROM users WHERE email = ?", [_normalize_email(email)]) is not None


def create_user(email: str, name: str, password_hash: str, contacts: str = "") -> int:
    """Insert a new account and return its id; contact details are stored encrypted."""

    with session_scope() as session:
        user = User(
            email=_normalize_email(email),
            name=name,
            password_hash=password_hash,
            contacts=encrypt_sensitive_value(contacts),
        )
        session.add(user)
        session.flush()
        return int(user.id)


def get_user_by_email(email: str) -> Optional[Mapping[str, object]]:
    with session_scope() as session:
        user = session.execute(select(User).where(User.email == _normalize_email(email))).scalar_one_or_none()
        return _serialize_user(user)


def get_user_by_id(user_id: int) -> Optional[Mapping[str, object]]:
    with session_scope() as session:
        return _serialize_user(session.get(User, user_id))


# --------------------------------------------------------------------------------------
# Categories
# --------------------------------------------------------------------------------------


def fetch_categories() -> list[Mapping[str, object]]:
    """Return every category in display order."""

    return fetch_all("SELECT id, title, code FROM categories ORDER BY id")


def get_category(category_id: int) -> Optional[Mapping[str, object]]:
    if category_id > MAX_ROW_ID:
        return None
    stmt = select(Category.id, Category.title, Category.code).where(Category.id == category_id)
    with session_scope() as session:
        row = session.execute(stmt).mappings().first()
        return dict(row) if row else None


# --------------------------------------------------------------------------------------
# Lots
# --------------------------------------------------------------------------------------


def _lot_select() -> Select:
    """Return the base select for lots with their category and live price."""

    bid_summary = (
        select(
            Bid.lot_id.label("lot_id"),
            func.max(Bid.amount).label("max_amount"),
            func.count(Bid.id).label("bid_count"),
        )
        .group_by(Bid.lot_id)
        .subquery()
    )
    return (
        select(
            Lot.id,
            Lot.title,
            Lot.description,
            Lot.image_path,
            Lot.start_price,
            Lot.bid_step,
            Lot.ends_on,
            Lot.created_at,
            Lot.author_id,
            Lot.category_id,
            Lot.winner_id,
            Category.title.label("category_title"),
            Category.code.label("category_code"),
            func.coalesce(bid_summary.c.max_amount, Lot.start_price).label("current_price"),
            func.coalesce(bid_summary.c.bid_count, 0).label("bid_count"),
        )
        .join(Category, Lot.category)
        .join(bid_summary, bid_summary.c.lot_id == Lot.id, isouter=True)
    )


def fetch_open_lots(
    *,
    limit: Optional[int] = None,
    category_id: Optional[int] = None,
    today: Optional[date] = None,
) -> list[Mapping[str, object]]:
    """Return lots still accepting bids, newest first."""

    filters = [Lot.ends_on > (today or date.today())]
    if category_id is not None:
        filters.append(Lot.category_id == category_id)

    stmt = _lot_select().where(and_(*filters)).order_by(Lot.created_at.desc(), Lot.id.desc())
    if limit:
        stmt = stmt.limit(limit)

    with session_scope() as session:
        return [dict(row) for row in session.execute(stmt).mappings().all()]


def get_lot(lot_id: int) -> Optional[Mapping[str, object]]:
    """Return a single lot or None when not found."""

    if lot_id > MAX_ROW_ID:
        return None
    stmt = _lot_select().where(Lot.id == lot_id)
    with session_scope() as session:
        row = session.execute(stmt).mappings().first()
        return dict(row) if row else None


def insert_lot(
    *,
    title: str,
    description: str,
    image_path: str,
    start_price: int,
    bid_step: int,
    ends_on: date,
    author_id: int,
    category_id: int,
) -> int:
    """Persist a new lot and return its id."""

    with session_scope() as session:
        lot = Lot(
            title=title,
            description=description,
            image_path=image_path,
            start_price=start_price,
            bid_step=bid_step,
            ends_on=ends_on,
            author_id=author_id,
            category_id=category_id,
        )
        session.add(lot)
        session.flush()
        return int(lot.id)


# --------------------------------------------------------------------------------------
# Bids
# --------------------------------------------------------------------------------------


def fetch_lot_bids(lot_id: int) -> list[Mapping[str, object]]:
    """Return the bids placed on a lot, most recent first."""

    stmt = (
        select(
            Bid.id,
            Bid.amount,
            Bid.created_at,
            Bid.user_id,
            User.name.label("user_name"),
        )
        .join(User, Bid.user)
        .where(Bid.lot_id == lot_id)
        .order_by(Bid.created_at.desc(), Bid.id.desc())
    )
    with session_scope() as session:
        return [dict(row) for row in session.execute(stmt).mappings().all()]


def create_bid(lot_id: int, user_id: int, amount: int) -> int:
    with session_scope() as session:
        bid = Bid(lot_id=lot_id, user_id=user_id, amount=amount)
        session.add(bid)
        session.flush()
        return int(bid.id)


def assign_winners(today: Optional[date] = None) -> int:
    """Give every finished lot without a winner to its highest bidder.

    Returns the number of lots that received a winner.
    """

    with session_scope() as session:
        finished = (
            session.execute(
                select(Lot).where(Lot.ends_on <= (today or date.today()), Lot.winner_id.is_(None))
            )
            .scalars()
            .all()
        )
        assigned = 0
        for lot in finished:
            top_bid = session.execute(
                select(Bid)
                .where(Bid.lot_id == lot.id)
                .order_by(Bid.amount.desc(), Bid.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            if top_bid is None:
                continue
            lot.winner_id = top_bid.user_id
            assigned += 1
            logger.info("Lot %s won by user %s with %s", lot.id, top_bid.user_id, top_bid.amount)
        return assigned

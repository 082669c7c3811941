"""
Shared fixtures for the auction tests.

The database URL, upload folder and Fernet key must be set before ``config``
is imported, because the engine and the upload directory are created at
import time.
"""

from __future__ import annotations

import os
import tempfile
from datetime import date, timedelta
from pathlib import Path
from typing import Iterator

from cryptography.fernet import Fernet

_TMP_DIR = Path(tempfile.mkdtemp(prefix="auction-tests-"))
os.environ["AUCTION_DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["AUCTION_UPLOAD_FOLDER"] = str(_TMP_DIR / "uploads")
os.environ.setdefault("SENSITIVE_DATA_KEY", Fernet.generate_key().decode("utf-8"))

import pytest
from flask.testing import FlaskClient
from sqlalchemy import delete

import database
from app import app as flask_app
from security import hash_password

TEST_PASSWORD = "snow-pass-42"


@pytest.fixture(autouse=True)
def clean_tables() -> Iterator[None]:
    """Drop users, lots and bids after every test; categories stay seeded."""
    yield
    with database.session_scope() as session:
        session.execute(delete(database.Bid))
        session.execute(delete(database.Lot))
        session.execute(delete(database.User))


@pytest.fixture
def client() -> FlaskClient:
    flask_app.config["TESTING"] = True
    return flask_app.test_client()


@pytest.fixture
def make_user():
    def _make(email: str = "yeti@example.com", name: str = "Йети") -> int:
        return database.create_user(email, name, hash_password(TEST_PASSWORD), contacts="+7 900 000-00-00")

    return _make


@pytest.fixture
def category_id() -> int:
    return int(database.fetch_categories()[0]["id"])


@pytest.fixture
def make_lot(category_id):
    def _make(author_id: int, *, days_left: int = 3, start_price: int = 1000, bid_step: int = 100, title: str = "Сноуборд") -> int:
        return database.insert_lot(
            title=title,
            description="Почти новый",
            image_path="board.png",
            start_price=start_price,
            bid_step=bid_step,
            ends_on=date.today() + timedelta(days=days_left),
            author_id=author_id,
            category_id=category_id,
        )

    return _make


def sign_in(client: FlaskClient, user_id: int) -> None:
    with client.session_transaction() as sess:
        sess["user_id"] = user_id

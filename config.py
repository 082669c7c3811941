"""Runtime settings for the auction site, read from the environment."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-me"
    DATABASE_URL = os.environ.get("AUCTION_DATABASE_URL") or f"sqlite:///{BASE_DIR / 'auction.db'}"
    UPLOAD_FOLDER = Path(os.environ.get("AUCTION_UPLOAD_FOLDER") or BASE_DIR / "static" / "uploads")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH") or 16 * 1024 * 1024)
    LOTS_PER_PAGE = int(os.environ.get("LOTS_PER_PAGE") or 9)

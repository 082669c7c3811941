"""
Tiny helper script to create the auction database before running the app.
Usage: python init_db.py
"""

from database import DATABASE_URL, init_db


def main() -> None:
    init_db()
    print(f"Database ready at {DATABASE_URL}")


if __name__ == "__main__":
    main()

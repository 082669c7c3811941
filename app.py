"""Public-facing Flask application for the Yeti Cave auction."""

from __future__ import annotations

import math
from datetime import date
from functools import partial
from pathlib import Path
from typing import Mapping, Optional, cast
from uuid import uuid4

from flask import Flask, abort, redirect, request, send_from_directory, session, url_for
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers import Response

from config import Config
from database import (
    assign_winners,
    create_bid,
    create_user,
    email_exists,
    fetch_categories,
    fetch_lot_bids,
    fetch_open_lots,
    get_category,
    get_lot,
    get_user_by_email,
    get_user_by_id,
    init_db,
    insert_lot,
)
from security import hash_password, verify_password
from templating import render_page
from validation import (
    chain,
    form_validation,
    validate_bid,
    validate_category_id,
    validate_email,
    validate_email_unique,
    validate_end_date,
    validate_file,
    validate_price,
    validate_step_rate,
)

# Ensure the database and categories exist before serving.
init_db()

app = Flask(__name__)
app.config.from_object(Config)
UPLOAD_DIR = Path(app.config["UPLOAD_FOLDER"])
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

SIGN_UP_FIELDS = ("email", "password", "name", "message")
LOGIN_FIELDS = ("email", "password")
LOT_FIELDS = ("lot_name", "category", "message", "lot_rate", "lot_step", "lot_date")
BID_FIELDS = ("cost",)
ERROR_TITLES = {
    403: "Доступ запрещён",
    404: "Страница не найдена",
}


def _form_values(fields: tuple[str, ...]) -> dict[str, str]:
    """Collect the expected form fields, using "" for anything the browser did not send."""
    return {field: request.form.get(field, "") for field in fields}


def _current_user() -> Mapping[str, object] | None:
    """Return the authenticated user dict, clearing stale sessions if needed."""
    user_id = session.get("user_id")
    if user_id is None:
        return None
    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        session.pop("user_id", None)
        return None

    user = get_user_by_id(user_id_int)
    if not user:
        session.pop("user_id", None)
        return None
    return user


def _render(name: str, data: Optional[Mapping[str, object]] = None, *, title: str, **layout_data: object) -> str:
    """Render a page fragment inside the layout with the navigation and signed-in user."""
    return render_page(
        name,
        data,
        title=title,
        categories=fetch_categories(),
        current_user=_current_user(),
        **layout_data,
    )


def _save_image(file_storage: FileStorage) -> str:
    """Persist an uploaded lot image under a unique name and return that name."""
    extension = Path(file_storage.filename or "").suffix.lower()
    unique_name = f"{uuid4().hex}{extension}"
    destination = UPLOAD_DIR / unique_name
    try:
        file_storage.save(destination)
    except OSError:
        app.logger.exception("Could not store uploaded image %s.", destination)
        raise
    return unique_name


@app.errorhandler(403)
@app.errorhandler(404)
def http_error(error: HTTPException) -> tuple[str, int]:
    code = error.code or 500
    title = ERROR_TITLES.get(code, "Ошибка")
    return _render("error.html", {"code": code, "message": title}, title=title), code


@app.route("/")
def index() -> str:
    """Landing page with the newest lots that are still open."""
    assign_winners()
    lots = fetch_open_lots(limit=app.config["LOTS_PER_PAGE"])
    return _render(
        "main.html",
        {"lots": lots, "categories": fetch_categories()},
        title="Главная",
        hide_nav=True,
    )


@app.route("/uploads/<path:filename>")
def uploaded_image(filename: str) -> Response:
    return send_from_directory(UPLOAD_DIR, filename)


@app.route("/category/<int:category_id>")
def category_lots(category_id: int) -> str:
    """Open lots of a single category."""
    category = get_category(category_id)
    if not category:
        abort(404)
    lots = fetch_open_lots(category_id=category_id)
    return _render(
        "category.html",
        {"category": category, "lots": lots},
        title=f"Все лоты в категории {category['title']}",
    )


@app.route("/lot/<int:lot_id>", methods=["GET", "POST"])
def lot_detail(lot_id: int) -> str | Response:
    """Lot page with bid history; POST places a bid."""
    lot = get_lot(lot_id)
    if not lot:
        abort(404)

    bids = fetch_lot_bids(lot_id)
    user = _current_user()
    min_bid = int(cast(int, lot["current_price"])) + int(cast(int, lot["bid_step"]))
    is_open = cast(date, lot["ends_on"]) > date.today()
    can_bid = bool(
        user
        and is_open
        and user["id"] != lot["author_id"]
        and (not bids or bids[0]["user_id"] != user["id"])
    )

    form = _form_values(BID_FIELDS)
    errors: dict[str, str] = {}
    if request.method == "POST":
        if not can_bid:
            app.logger.warning("Rejected bid on lot %s from user %s.", lot_id, session.get("user_id"))
            abort(403)
        rules = {"cost": partial(validate_bid, min_bid=min_bid)}
        errors = form_validation(form, rules, BID_FIELDS)
        if not errors:
            user_id = int(cast(int, user["id"]))
            amount = int(form["cost"].strip())
            create_bid(lot_id, user_id, amount)
            app.logger.info("User %s bid %s on lot %s.", user_id, amount, lot_id)
            return redirect(url_for("lot_detail", lot_id=lot_id))

    return _render(
        "lot.html",
        {
            "lot": lot,
            "bids": bids,
            "min_bid": min_bid,
            "can_bid": can_bid,
            "form": form,
            "errors": errors,
        },
        title=str(lot["title"]),
    )


@app.route("/add", methods=["GET", "POST"])
def add_lot() -> str | Response:
    """Create a new lot."""
    user = _current_user()
    if not user:
        app.logger.warning("Anonymous visitor tried to open the add-lot form.")
        abort(403)

    categories = fetch_categories()
    form = _form_values(LOT_FIELDS)
    errors: dict[str, str] = {}

    if request.method == "POST":
        upload = request.files.get("lot_img")
        form["lot_img"] = upload.filename if upload and upload.filename else ""

        rules = {
            "category": partial(validate_category_id, category_ids=[c["id"] for c in categories]),
            "lot_rate": validate_price,
            "lot_step": validate_step_rate,
            "lot_date": validate_end_date,
            "lot_img": validate_file,
        }
        required = set(LOT_FIELDS) | {"lot_img"}
        errors = form_validation(form, rules, required)

        if not errors and upload is not None:
            image_name = _save_image(upload)
            lot_id = insert_lot(
                title=form["lot_name"].strip(),
                description=form["message"].strip(),
                image_path=image_name,
                start_price=math.ceil(float(form["lot_rate"])),
                bid_step=int(form["lot_step"].strip()),
                ends_on=date.fromisoformat(form["lot_date"].strip()),
                author_id=int(cast(int, user["id"])),
                category_id=int(form["category"]),
            )
            app.logger.info("User %s created lot %s.", user["id"], lot_id)
            return redirect(url_for("lot_detail", lot_id=lot_id))

    return _render(
        "add_lot.html",
        {"categories": categories, "form": form, "errors": errors},
        title="Добавление лота",
    )


@app.route("/sign-up", methods=["GET", "POST"])
def sign_up() -> str | Response:
    """Register a new account."""
    if _current_user():
        abort(403)

    form = _form_values(SIGN_UP_FIELDS)
    errors: dict[str, str] = {}

    if request.method == "POST":
        rules = {
            "email": chain(validate_email, partial(validate_email_unique, email_exists=email_exists)),
        }
        errors = form_validation(form, rules, SIGN_UP_FIELDS)
        if not errors:
            user_id = create_user(
                form["email"].strip().lower(),
                form["name"].strip(),
                hash_password(form["password"]),
                contacts=form["message"].strip(),
            )
            app.logger.info("Registered user %s.", user_id)
            return redirect(url_for("login"))

    return _render("sign_up.html", {"form": form, "errors": errors}, title="Регистрация")


@app.route("/login", methods=["GET", "POST"])
def login() -> str | Response:
    """Authenticate an existing user."""
    if _current_user():
        abort(403)

    form = _form_values(LOGIN_FIELDS)
    errors: dict[str, str] = {}

    if request.method == "POST":
        errors = form_validation(form, {"email": validate_email}, LOGIN_FIELDS)
        if not errors:
            user = get_user_by_email(form["email"].strip().lower())
            if not user:
                errors["email"] = "Такой пользователь не найден"
            elif not verify_password(form["password"], cast(str, user["password_hash"])):
                errors["password"] = "Вы ввели неверный пароль"
            else:
                session["user_id"] = int(cast(int, user["id"]))
                return redirect(url_for("index"))

    return _render("login.html", {"form": form, "errors": errors}, title="Вход")


@app.route("/logout")
def logout() -> Response:
    session.pop("user_id", None)
    return redirect(url_for("index"))


if __name__ == "__main__":
    app.run(debug=True)

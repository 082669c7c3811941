"""Form validation for the auction pages.

Validators take the raw submitted string and return an error message or
``None``. Validators that need outside context (the set of category ids, a
way to look up existing e-mails, the minimum bid) accept it as a keyword
argument; bind it with :func:`functools.partial` when building the rules.
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from pathlib import PurePosixPath
from typing import Callable, Collection, Iterable, Mapping, Optional

from formatting import format_currency, is_date_valid, seconds_until

Validator = Callable[[str], Optional[str]]

REQUIRED_MESSAGE = "Заполните это поле"
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png"}
MIN_LOT_DURATION_SECONDS = 24 * 3600
# Largest value an SQLite INTEGER column holds.
MAX_AMOUNT = 2**63 - 1


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    return not str(value).strip()


def form_validation(
    form: Mapping[str, str],
    rules: Mapping[str, Validator],
    required: Collection[str],
) -> dict[str, str]:
    """Validate a submitted form and return ``{field: message}`` for every failing field.

    Only fields present in ``form`` are checked. A required field that is
    missing from the mapping altogether is not reported, so callers build
    ``form`` from a fixed list of field names.
    """

    errors: dict[str, str] = {}
    for name, value in form.items():
        if name in required and _is_empty(value):
            errors[name] = REQUIRED_MESSAGE
            continue
        rule = rules.get(name)
        if rule is None:
            continue
        message = rule(value)
        if message:
            errors[name] = message
    return errors


def chain(*validators: Validator) -> Validator:
    """Run validators in order and stop at the first error."""

    def run(value: str) -> Optional[str]:
        for validator in validators:
            message = validator(value)
            if message:
                return message
        return None

    return run


def validate_email(value: str) -> Optional[str]:
    if not EMAIL_PATTERN.match((value or "").strip()):
        return "Введите корректный email"
    return None


def validate_email_unique(value: str, *, email_exists: Callable[[str], bool]) -> Optional[str]:
    """Reject an e-mail already owned by an account.

    ``email_exists`` is the storage lookup; errors raised by it are not caught.
    """

    if email_exists(value.strip().lower()):
        return "Пользователь с этим email уже зарегистрирован"
    return None


def validate_password(value: str) -> Optional[str]:
    if _is_empty(value):
        return REQUIRED_MESSAGE
    return None


def validate_price(value: str) -> Optional[str]:
    """Starting price must be a number above zero."""

    try:
        price = float(str(value).strip())
    except ValueError:
        return "Значение должно быть числом больше 0"
    if not math.isfinite(price) or price <= 0 or math.ceil(price) > MAX_AMOUNT:
        return "Значение должно быть числом больше 0"
    return None


def validate_end_date(value: str, *, now: datetime | None = None) -> Optional[str]:
    """End date must be a YYYY-MM-DD date at least one day ahead."""

    value = (value or "").strip()
    if not is_date_valid(value):
        return "Введите дату в формате ГГГГ-ММ-ДД"
    if seconds_until(value, now=now) < MIN_LOT_DURATION_SECONDS:
        return "Дата должна быть больше текущей даты хотя бы на 1 день."
    return None


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def validate_step_rate(value: str) -> Optional[str]:
    step = _parse_int(value)
    if step is None or not 0 < step <= MAX_AMOUNT:
        return "Значение должно быть целым числом больше 0"
    return None


def validate_category_id(value: str, *, category_ids: Iterable[object]) -> Optional[str]:
    if str(value).strip() not in {str(category_id) for category_id in category_ids}:
        return "Выберите категорию из списка"
    return None


def validate_file(filename: str) -> Optional[str]:
    """Accept JPG, JPEG and PNG uploads, judged by file extension."""

    extension = PurePosixPath(filename or "").suffix.lstrip(".").lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        return "Загрузите картинку в формате JPG, JPEG или PNG"
    return None


def validate_bid(value: str, *, min_bid: int) -> Optional[str]:
    """A bid must be a whole amount no lower than the current price plus the bid step."""

    amount = _parse_int(value)
    if amount is None or not 0 < amount <= MAX_AMOUNT:
        return "Значение должно быть целым числом больше 0"
    if amount < min_bid:
        return f"Ставка должна быть не меньше {format_currency(min_bid)}"
    return None

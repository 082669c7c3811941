"""Display helpers shared by templates and validators: dates, plurals, prices."""

from __future__ import annotations

import math
from datetime import date, datetime, time
from typing import Union

from markupsafe import Markup, escape

DATE_FORMAT = "%Y-%m-%d"
ABSOLUTE_FORMAT = "%d.%m.%y в %H:%M"
CURRENCY_SIGN = "₽"

DateLike = Union[str, date, datetime]


def is_date_valid(value: str) -> bool:
    """Return True when ``value`` is a real calendar date written as YYYY-MM-DD.

    ``strptime`` rejects overflowed days and months ("2019-04-31"), the round
    trip through ``strftime`` rejects unpadded forms such as "2019-4-1".
    """

    if not isinstance(value, str):
        return False
    try:
        parsed = datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return parsed.strftime(DATE_FORMAT) == value


def get_noun_plural_form(number: int, one: str, few: str, many: str) -> str:
    """Pick the Russian plural form for ``number``: 1 минута, 3 минуты, 5 минут."""

    number = int(number)
    mod10 = number % 10
    mod100 = number % 100

    if 11 <= mod100 <= 20:
        return many
    if mod10 == 1:
        return one
    if 2 <= mod10 <= 4:
        return few
    return many


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return datetime.strptime(value, DATE_FORMAT)


def relative_time(moment: DateLike, *, now: datetime | None = None) -> str:
    """Describe how long ago ``moment`` happened, e.g. "5 минут назад".

    Anything older than a day is shown as an absolute date and time.
    """

    if isinstance(moment, str):
        moment = datetime.fromisoformat(moment)
    moment = _as_datetime(moment)
    current = now or datetime.now()
    elapsed = max(0, int((current - moment).total_seconds()))

    if elapsed < 60:
        noun = get_noun_plural_form(elapsed, "секунда", "секунды", "секунд")
        return f"{elapsed} {noun} назад"
    if elapsed < 3600:
        minutes = elapsed // 60
        noun = get_noun_plural_form(minutes, "минута", "минуты", "минут")
        return f"{minutes} {noun} назад"
    if elapsed < 3600 * 24:
        hours = elapsed // 3600
        noun = get_noun_plural_form(hours, "час", "часа", "часов")
        return f"{hours} {noun} назад"
    return moment.strftime(ABSOLUTE_FORMAT)


def seconds_until(target: DateLike, *, now: datetime | None = None) -> int:
    """Return whole seconds from ``now`` until midnight of ``target`` (negative once passed)."""

    current = now or datetime.now()
    return math.floor((_as_datetime(target) - current).total_seconds())


def remaining_time(target: DateLike, *, now: datetime | None = None) -> tuple[str, str, str]:
    """Split the time left until ``target`` into padded (hours, minutes, seconds)."""

    diff = seconds_until(target, now=now)
    hours, rest = divmod(diff, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}", f"{minutes:02d}", str(seconds)


def format_currency(value: float | int | str) -> str:
    """Round up to a whole amount and group thousands: 999.2 -> "1 000 ₽"."""

    amount = math.ceil(float(value))
    grouped = f"{amount:,}".replace(",", " ")
    return f"{grouped} {CURRENCY_SIGN}"


def escape_html(value: object) -> Markup:
    """Replace ``& < > " '`` with HTML entities."""

    return escape("" if value is None else str(value))

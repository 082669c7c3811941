from __future__ import annotations

from datetime import datetime
from functools import partial

import pytest

from validation import (
    MAX_AMOUNT,
    REQUIRED_MESSAGE,
    chain,
    form_validation,
    validate_bid,
    validate_category_id,
    validate_email,
    validate_email_unique,
    validate_end_date,
    validate_file,
    validate_password,
    validate_price,
    validate_step_rate,
)

NOW = datetime(2024, 3, 10, 12, 0, 0)


class TestFormValidation:
    def test_empty_required_field_is_reported(self):
        errors = form_validation({"email": "", "password": "x"}, {}, {"email", "password"})
        assert errors == {"email": REQUIRED_MESSAGE}

    def test_whitespace_counts_as_empty(self):
        errors = form_validation({"name": "   "}, {}, {"name"})
        assert errors == {"name": REQUIRED_MESSAGE}

    def test_required_message_wins_over_rule(self):
        calls = []

        def rule(value):
            calls.append(value)
            return "rule failed"

        errors = form_validation({"email": ""}, {"email": rule}, {"email"})
        assert errors == {"email": REQUIRED_MESSAGE}
        assert calls == []

    def test_rule_message_is_recorded(self):
        errors = form_validation({"email": "nope"}, {"email": validate_email}, {"email"})
        assert errors == {"email": "Введите корректный email"}

    def test_valid_submission_returns_empty_mapping(self):
        errors = form_validation(
            {"email": "yeti@example.com", "password": "secret"},
            {"email": validate_email},
            {"email", "password"},
        )
        assert errors == {}

    def test_absent_required_field_is_not_reported(self):
        assert form_validation({"password": "x"}, {}, {"email", "password"}) == {}

    def test_optional_field_without_rule_is_ignored(self):
        assert form_validation({"comment": ""}, {}, set()) == {}


def test_chain_stops_at_first_error():
    seen = []

    def second(value):
        seen.append(value)
        return None

    rule = chain(validate_email, second)
    assert rule("bad") == "Введите корректный email"
    assert seen == []
    assert rule("ok@example.com") is None
    assert seen == ["ok@example.com"]


@pytest.mark.parametrize("value", ["yeti@example.com", "first.last@mail.ru"])
def test_validate_email_accepts(value):
    assert validate_email(value) is None


@pytest.mark.parametrize("value", ["yeti", "yeti@", "@example.com", "ye ti@example.com"])
def test_validate_email_rejects(value):
    assert validate_email(value) == "Введите корректный email"


def test_validate_email_unique_uses_lookup():
    taken = {"busy@example.com"}
    rule = partial(validate_email_unique, email_exists=taken.__contains__)
    assert rule("free@example.com") is None
    assert rule("busy@example.com") == "Пользователь с этим email уже зарегистрирован"
    assert rule(" Busy@Example.com ") == "Пользователь с этим email уже зарегистрирован"


def test_validate_password():
    assert validate_password("") == REQUIRED_MESSAGE
    assert validate_password("secret") is None


@pytest.mark.parametrize("value", ["100", "0.5", "99.99"])
def test_validate_price_accepts(value):
    assert validate_price(value) is None


@pytest.mark.parametrize("value", ["0", "-3", "abc", "", "nan", "inf", "1e300", "9223372036854775808"])
def test_validate_price_rejects(value):
    assert validate_price(value) == "Значение должно быть числом больше 0"


def test_validate_end_date_accepts_two_days_ahead():
    assert validate_end_date("2024-03-12", now=NOW) is None


def test_validate_end_date_rejects_tomorrow_midnight():
    assert validate_end_date("2024-03-11", now=NOW) == "Дата должна быть больше текущей даты хотя бы на 1 день."


def test_validate_end_date_rejects_past():
    assert validate_end_date("2024-01-01", now=NOW) == "Дата должна быть больше текущей даты хотя бы на 1 день."


@pytest.mark.parametrize("value", ["12.03.2024", "2024-02-30", "soon"])
def test_validate_end_date_rejects_malformed(value):
    assert validate_end_date(value, now=NOW) == "Введите дату в формате ГГГГ-ММ-ДД"


@pytest.mark.parametrize("value", ["1", "250"])
def test_validate_step_rate_accepts(value):
    assert validate_step_rate(value) is None


@pytest.mark.parametrize("value", ["0", "-1", "2.5", "ten", "99999999999999999999"])
def test_validate_step_rate_rejects(value):
    assert validate_step_rate(value) == "Значение должно быть целым числом больше 0"


def test_validate_category_id():
    assert validate_category_id("2", category_ids=[1, 2, 3]) is None
    assert validate_category_id("9", category_ids=[1, 2, 3]) == "Выберите категорию из списка"


@pytest.mark.parametrize("filename", ["photo.jpg", "photo.JPEG", "board.png"])
def test_validate_file_accepts(filename):
    assert validate_file(filename) is None


@pytest.mark.parametrize("filename", ["photo.gif", "notes.txt", "png", ""])
def test_validate_file_rejects(filename):
    assert validate_file(filename) == "Загрузите картинку в формате JPG, JPEG или PNG"


def test_validate_bid():
    assert validate_bid("1100", min_bid=1100) is None
    assert validate_bid("1099", min_bid=1100) == "Ставка должна быть не меньше 1 100 ₽"
    assert validate_bid("abc", min_bid=1100) == "Значение должно быть целым числом больше 0"


@pytest.mark.parametrize("value", ["9223372036854775808", "99999999999999999999"])
def test_validate_bid_rejects_amounts_too_large_to_store(value):
    assert validate_bid(value, min_bid=1100) == "Значение должно быть целым числом больше 0"


def test_validate_bid_accepts_largest_storable_amount():
    assert validate_bid(str(MAX_AMOUNT), min_bid=1100) is None

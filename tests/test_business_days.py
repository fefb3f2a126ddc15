from datetime import date, datetime

from core.business_days import add_business_days, business_days_between, is_business_day, is_holiday


def test_weekends_and_fixed_holidays_are_not_business_days():
    assert is_business_day(date(2025, 1, 3))       # Friday
    assert not is_business_day(date(2025, 1, 4))   # Saturday
    assert not is_business_day(date(2025, 1, 5))   # Sunday
    assert is_holiday(date(2024, 12, 25))
    assert not is_business_day(date(2024, 12, 25))  # Wednesday, Natal


def test_add_business_days_skips_weekend():
    assert add_business_days(date(2025, 1, 3), 1) == date(2025, 1, 6)
    assert add_business_days(date(2025, 1, 3), 5) == date(2025, 1, 10)


def test_add_business_days_skips_holidays():
    # 2024-12-31 is a Tuesday, 2025-01-01 a holiday
    assert add_business_days(date(2024, 12, 31), 1) == date(2025, 1, 2)
    # Friday before Tiradentes (Monday 2025-04-21)
    assert add_business_days(date(2025, 4, 18), 1) == date(2025, 4, 22)


def test_add_business_days_backwards_and_zero():
    assert add_business_days(date(2025, 1, 6), -1) == date(2025, 1, 3)
    assert add_business_days(date(2025, 1, 4), 0) == date(2025, 1, 4)


def test_add_business_days_keeps_time_of_day():
    assert add_business_days(datetime(2025, 1, 3, 14, 30), 1) == datetime(2025, 1, 6, 14, 30)


def test_business_days_between():
    assert business_days_between(date(2025, 1, 3), date(2025, 1, 10)) == 5
    assert business_days_between(date(2025, 1, 10), date(2025, 1, 3)) == -5
    assert business_days_between(date(2025, 1, 3), date(2025, 1, 3)) == 0
    assert business_days_between(date(2025, 1, 3), datetime(2025, 1, 6, 9, 0)) == 1

from datetime import date, datetime

import pytest


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def fixed_today(fixed_now) -> date:
    return fixed_now.date()

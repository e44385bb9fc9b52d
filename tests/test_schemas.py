from datetime import date

import pytest

from rentdesk.documents.formatting import format_date
from rentdesk.schemas import Rental, parse_date
from rentdesk.services.errors import ClientValidationError, parse_record_id

PRAGUE = "CET-1CEST,M3.5.0,M10.5.0/3"


def test_plain_date_is_kept():
    assert parse_date("2024-05-01") == "2024-05-01"
    assert Rental(issue_date="2024-05-01").issue_date == date(2024, 5, 1)
    assert parse_date("") is None


def test_timestamp_is_read_as_local_date(local_timezone):
    local_timezone(PRAGUE)

    rental = Rental(issue_date="2024-04-30T22:00:00.000Z", planned_return_date="2024-12-23T23:00:00.000Z")

    assert rental.issue_date == date(2024, 5, 1)
    assert rental.planned_return_date == date(2024, 12, 24)
    assert format_date("2024-04-30T22:00:00.000Z") == "1. 5. 2024"


def test_timestamp_west_of_utc_falls_on_previous_day(local_timezone):
    local_timezone("EST+5")

    assert parse_date("2024-05-01T02:00:00Z") == date(2024, 4, 30)


def test_unparseable_timestamp_keeps_its_date_part():
    assert parse_date("2024-05-01 at noon") == "2024-05-01"


def test_record_ids_are_validated():
    assert parse_record_id(" 12 ") == 12
    assert parse_record_id(3) == 3
    for value in ("abc", "0", -1, True, None, "1.5"):
        with pytest.raises(ClientValidationError):
            parse_record_id(value)

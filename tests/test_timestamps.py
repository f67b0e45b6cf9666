from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from orderdesk.core.normalize import to_datetime, to_iso, to_millis

DEFAULT = datetime(2000, 1, 1, tzinfo=timezone.utc)


class _ServerTimestamp:
    def __init__(self, value: datetime):
        self._value = value

    def to_datetime(self) -> datetime:
        return self._value


class _EpochLike:
    def timestamp(self) -> float:
        return 1_700_000_000.0


def test_iso_strings_and_naive_datetimes_become_utc() -> None:
    assert to_datetime("2026-02-01T10:00:00Z") == datetime(2026, 2, 1, 10, tzinfo=timezone.utc)
    assert to_datetime("2026-02-01T12:00:00+02:00") == datetime(2026, 2, 1, 10, tzinfo=timezone.utc)
    assert to_datetime(datetime(2026, 2, 1, 10)) == datetime(2026, 2, 1, 10, tzinfo=timezone.utc)
    assert to_datetime(date(2026, 2, 1)) == datetime(2026, 2, 1, tzinfo=timezone.utc)


def test_epoch_millis_and_timestamp_objects() -> None:
    expected = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert to_datetime(1_700_000_000_000) == expected
    assert to_datetime("1700000000000") == expected
    assert to_datetime(_EpochLike()) == expected
    assert to_datetime(_ServerTimestamp(datetime(2026, 1, 1))) == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_missing_or_unreadable_values_fall_back() -> None:
    assert to_datetime(None, default=DEFAULT) == DEFAULT
    assert to_datetime("", default=DEFAULT) == DEFAULT
    assert to_datetime("not a date at all", default=DEFAULT) == DEFAULT
    assert to_datetime(object(), default=DEFAULT) == DEFAULT
    assert to_datetime(10**18, default=DEFAULT) == DEFAULT
    assert to_datetime("99999999999999999999", default=DEFAULT) == DEFAULT
    assert to_datetime(float("inf"), default=DEFAULT) == DEFAULT
    assert to_datetime(float("nan"), default=DEFAULT) == DEFAULT

    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    assert to_datetime(None) >= before


def test_mixed_representations_sort_consistently() -> None:
    values = [
        "2026-02-01T10:00:02Z",
        datetime(2026, 2, 1, 10, 0, 1, tzinfo=timezone.utc),
        to_millis("2026-02-01T10:00:03Z"),
        _ServerTimestamp(datetime(2026, 2, 1, 10, 0, 0)),
    ]
    ordered = sorted(values, key=to_millis)
    assert [to_datetime(v).second for v in ordered] == [0, 1, 2, 3]


def test_to_iso_keeps_none() -> None:
    assert to_iso(None) is None
    assert to_iso("2026-02-01T10:00:00Z") == "2026-02-01T10:00:00+00:00"

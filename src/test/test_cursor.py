from datetime import datetime, timedelta, timezone

import pytest

from chatstream.core.errors import MalformedCursor
from chatstream.utils.cursor import decode_cursor, encode_cursor, format_timestamp


class TestEncodeCursor:
    def test_renders_utc_with_microseconds(self):
        ts = datetime(2025, 10, 15, 12, 0, 0, 123456, tzinfo=timezone.utc)
        assert encode_cursor(ts, "abc") == "2025-10-15T12:00:00.123456Z_abc"

    def test_converts_offset_timestamps_to_utc(self):
        ts = datetime(2025, 10, 15, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert encode_cursor(ts, "m1").startswith("2025-10-15T12:00:00.000000Z_")

    def test_naive_timestamps_are_taken_as_utc(self):
        assert format_timestamp(datetime(2025, 1, 2, 3, 4, 5)) == "2025-01-02T03:04:05.000000Z"

    @pytest.mark.parametrize("message_id", ["", "has_underscore"])
    def test_rejects_ids_that_cannot_round_trip(self, message_id):
        with pytest.raises(ValueError):
            encode_cursor(datetime.now(timezone.utc), message_id)


class TestDecodeCursor:
    def test_decodes_position(self):
        position = decode_cursor("2025-10-15T12:00:00.500000Z_7f1c")
        assert position.id == "7f1c"
        assert position.created_at == datetime(
            2025, 10, 15, 12, 0, 0, 500000, tzinfo=timezone.utc
        )

    def test_inverse_of_encode(self):
        ts = datetime(2024, 2, 29, 23, 59, 59, 999999, tzinfo=timezone.utc)
        position = decode_cursor(encode_cursor(ts, "3b9e0c2a-1d4f-4c55-9d1e-0a6f2b7c8d90"))
        assert position == (ts, "3b9e0c2a-1d4f-4c55-9d1e-0a6f2b7c8d90")

    @pytest.mark.parametrize(
        "cursor",
        [
            "nounderscore",
            "_abc",
            "2025-10-15T12:00:00.000000Z_",
            "a_b_c",
            "not-a-date_abc",
            "2025-13-40T12:00:00.000000Z_abc",
        ],
    )
    def test_malformed(self, cursor):
        with pytest.raises(MalformedCursor) as exc:
            decode_cursor(cursor)
        assert exc.value.status_code == 400
        assert exc.value.detail == "Invalid cursor format"

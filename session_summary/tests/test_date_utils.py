import unittest
from datetime import datetime, timezone

from session_summary.date_utils import parse_iso_ts, utc_timestamp, wall_clock_ms


class DateUtilsTests(unittest.TestCase):
    def test_fraction_of_any_length_is_accepted(self) -> None:
        self.assertEqual(
            parse_iso_ts("2026-01-15T10:00:00.12345Z"),
            datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc),
        )
        self.assertEqual(
            parse_iso_ts("2026-01-15T10:00:00.1+00:00"),
            datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc),
        )

    def test_wall_clock_with_irregular_fractions(self) -> None:
        self.assertEqual(wall_clock_ms("2026-01-15T10:00:00.12345Z", "2026-01-15T10:00:07.1Z"), 7_000)

    def test_invalid_or_missing_timestamps(self) -> None:
        self.assertIsNone(parse_iso_ts("yesterday"))
        self.assertIsNone(parse_iso_ts(None))
        self.assertEqual(wall_clock_ms(None, "2026-01-15T10:00:00Z"), 0)

    def test_utc_timestamp_format(self) -> None:
        now = datetime(2026, 2, 16, 10, 4, 0, 999_000, tzinfo=timezone.utc)
        self.assertEqual(utc_timestamp(now), "2026-02-16T10:04:00Z")


if __name__ == "__main__":
    unittest.main()

# test_org_timestamps.py
#
# Run:
#   python -m unittest -v

import unittest
from datetime import date, datetime

import org_timestamps as m


class TestParseTimestamp(unittest.TestCase):
    def test_active_date(self):
        ts = m.parse_timestamp("<2024-03-15 Fri>")
        self.assertEqual((ts.year_start, ts.month_start, ts.day_start), (2024, 3, 15))
        self.assertEqual(ts.day_name, "Fri")
        self.assertTrue(ts.is_active)
        self.assertFalse(ts.has_time)
        self.assertFalse(ts.is_range)

    def test_inactive_with_time(self):
        ts = m.parse_timestamp("[2024-03-15 Fri 14:30]")
        self.assertFalse(ts.is_active)
        self.assertEqual((ts.hour_start, ts.minute_start), (14, 30))

    def test_same_day_time_range(self):
        ts = m.parse_timestamp("<2024-03-15 Fri 10:00-12:30>")
        self.assertTrue(ts.is_range)
        self.assertEqual((ts.hour_end, ts.minute_end), (12, 30))
        self.assertEqual(ts.raw_value, "<2024-03-15 Fri 10:00-12:30>")

    def test_date_range(self):
        text = "<2024-03-15 Fri>--<2024-03-17 Sun>"
        ts = m.parse_timestamp(text)
        self.assertEqual(ts.day_end, 17)
        self.assertEqual(ts.raw_value, text)

    def test_repeater_and_warning(self):
        ts = m.parse_timestamp("<2024-03-15 Fri +1w -2d>")
        self.assertEqual(ts.repeater, "+1w")
        self.assertEqual(ts.warning, "-2d")
        self.assertEqual(ts.raw_value, "<2024-03-15 Fri +1w -2d>")

    def test_raw_values_round_trip(self):
        for text in [
            "<2024-03-15>",
            "[2024-03-15 Fri 09:05]",
            "<2024-03-15 Fri .+2d>",
            "<2024-03-15 Fri ++1m --3d>",
            "[2024-03-15 Fri 10:00]--[2024-03-16 Sat 11:00]",
        ]:
            with self.subTest(text=text):
                self.assertEqual(m.parse_timestamp(text).raw_value, text)

    def test_invalid(self):
        for text in ["", "<2024-13-01>", "<2024-02-30>", "<2024-03-15", "[2024-03-15>", "2024-03-15",
                     "<2024-03-15>--[2024-03-16]"]:
            with self.subTest(text=text):
                self.assertIsNone(m.parse_timestamp(text))

    def test_out_of_range_time(self):
        for text in ["[2024-01-01 Mon 25:00]", "<2024-01-01 Mon 10:60>", "<2024-01-01 Mon 10:00-24:00>",
                     "[2024-01-01 Mon 10:00]--[2024-01-01 Mon 25:00]"]:
            with self.subTest(text=text):
                self.assertIsNone(m.parse_timestamp(text))
        self.assertEqual(m.parse_timestamp("[2024-01-01 Mon 23:59]").minute_start, 59)

    def test_parse_repeater(self):
        self.assertEqual(m.parse_repeater(".+2d"), (".+", 2, "d"))
        self.assertEqual(m.parse_repeater("++1w"), ("++", 1, "w"))
        self.assertIsNone(m.parse_repeater("+x"))


class TestBuildTimestamp(unittest.TestCase):
    def test_create_timestamp(self):
        self.assertEqual(m.create_timestamp(2024, 3, 15).raw_value, "<2024-03-15>")
        self.assertEqual(m.create_timestamp(2024, 3, 15, 14, 30).raw_value, "<2024-03-15 14:30>")
        self.assertEqual(m.create_timestamp(2024, 3, 15, active=False).raw_value, "[2024-03-15]")
        self.assertEqual(
            m.create_timestamp(2024, 3, 15, repeater_type="+", repeater_value=1, repeater_unit="w").raw_value,
            "<2024-03-15 +1w>",
        )

    def test_create_timestamp_rejects_bad_input(self):
        with self.assertRaises(ValueError):
            m.create_timestamp(2024, 2, 30)
        with self.assertRaises(ValueError):
            m.create_timestamp(2024, 3, 15, 25, 0)
        with self.assertRaises(ValueError):
            m.create_timestamp(2024, 3, 15, repeater_type="*", repeater_value=1, repeater_unit="d")

    def test_from_date(self):
        ts = m.timestamp_from_date(date(2024, 3, 15), with_day_name=True)
        self.assertEqual(ts.raw_value, "<2024-03-15 Fri>")

        ts = m.timestamp_from_date(datetime(2024, 3, 15, 8, 45), include_time=True, active=False)
        self.assertEqual(ts.raw_value, "[2024-03-15 08:45]")

    def test_to_date(self):
        ts = m.parse_timestamp("<2024-03-15 Fri 14:30>--<2024-03-16 Sat>")
        self.assertEqual(m.timestamp_to_date(ts), datetime(2024, 3, 15, 14, 30))
        self.assertEqual(m.timestamp_end_to_date(ts), datetime(2024, 3, 16))
        self.assertIsNone(m.timestamp_end_to_date(m.parse_timestamp("<2024-03-15>")))

    def test_day_name(self):
        self.assertEqual(m.day_name(date(2024, 3, 17)), "Sun")


class TestRepeaters(unittest.TestCase):
    def test_plus_shifts_once(self):
        ts = m.parse_timestamp("<2024-03-15 Fri +1w>")
        nxt = m.advance_timestamp(ts, today=date(2024, 6, 1))
        self.assertEqual(nxt.raw_value, "<2024-03-22 Fri +1w>")

    def test_plus_plus_moves_past_today(self):
        ts = m.parse_timestamp("<2024-03-15 Fri ++1w>")
        nxt = m.advance_timestamp(ts, today=date(2024, 4, 1))
        self.assertEqual(nxt.raw_value, "<2024-04-05 Fri ++1w>")

    def test_dot_plus_shifts_from_today(self):
        ts = m.parse_timestamp("<2024-03-15 Fri 09:00 .+2d>")
        nxt = m.advance_timestamp(ts, today=date(2024, 4, 1))
        self.assertEqual(nxt.raw_value, "<2024-04-03 Wed 09:00 .+2d>")

    def test_month_shift_clamps_day(self):
        ts = m.parse_timestamp("<2024-01-31 +1m>")
        self.assertEqual(m.advance_timestamp(ts, today=date(2024, 1, 1)).raw_value, "<2024-02-29 +1m>")

    def test_without_repeater_unchanged(self):
        ts = m.parse_timestamp("<2024-03-15>")
        self.assertIs(m.advance_timestamp(ts), ts)


if __name__ == "__main__":
    unittest.main(verbosity=2)

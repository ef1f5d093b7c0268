import datetime as dt
import unittest

from aqicast.calendar_encoder import (
    CALENDAR_CONTENT_TYPE,
    MAX_LINE_OCTETS,
    calendar_filename,
    encode,
    encode_records,
    escape_text,
    fold_line,
    format_value,
    pollutant_summary,
)
from aqicast.domain import Forecast, PollutantReading
from aqicast.errors import EncodingError
from aqicast.severity import make_record

GENERATED_AT = dt.datetime(2024, 6, 1, 8, 30, 0, tzinfo=dt.timezone.utc)


def _forecast(**overrides):
    days = overrides.pop("days", None) or [
        make_record(dt.date(2024, 6, 1), 55, "Sunny.", PollutantReading(pm2_5=12, o3=55)),
        make_record(dt.date(2024, 6, 2), 40, "Breezy.", PollutantReading(pm2_5=40)),
    ]
    return Forecast(city=overrides.pop("city", "Springfield"), days=days, **overrides)


def _unfold(data: bytes) -> list[str]:
    text = data.decode("utf-8")
    return text.replace("\r\n ", "").split("\r\n")


class TestEncode(unittest.TestCase):
    def test_document_structure(self):
        lines = _unfold(encode(_forecast(), GENERATED_AT))

        self.assertEqual(lines[0], "BEGIN:VCALENDAR")
        self.assertIn("VERSION:2.0", lines)
        self.assertIn("PRODID:-//AQICast//AQI Forecast//EN", lines)
        self.assertIn("X-WR-CALNAME:AQI Forecast - Springfield", lines)
        self.assertEqual(lines[-2], "END:VCALENDAR")
        self.assertEqual(lines[-1], "")
        self.assertEqual(lines.count("BEGIN:VEVENT"), 2)
        self.assertEqual(lines.count("END:VEVENT"), 2)

    def test_crlf_only(self):
        data = encode(_forecast(), GENERATED_AT)
        self.assertNotIn(b"\n", data.replace(b"\r\n", b""))
        self.assertTrue(data.endswith(b"\r\n"))

    def test_event_fields(self):
        lines = _unfold(encode(_forecast(), GENERATED_AT, host="example.org"))

        self.assertIn("UID:20240601T083000Z-0@example.org", lines)
        self.assertIn("UID:20240601T083000Z-1@example.org", lines)
        self.assertIn("DTSTAMP:20240601T083000Z", lines)
        self.assertIn("DTSTART;VALUE=DATE:20240601", lines)
        self.assertIn("DTEND;VALUE=DATE:20240602", lines)
        self.assertIn("SUMMARY:\U0001F7E1 AQI: 55 (Moderate)", lines)
        self.assertIn("SUMMARY:\U0001F7E2 AQI: 40 (Good)", lines)
        self.assertEqual(lines.count("TRANSP:TRANSPARENT"), 2)
        self.assertFalse(any(line.startswith("DTSTART:") for line in lines))

    def test_description_with_pollutants(self):
        lines = _unfold(encode(_forecast(), GENERATED_AT))
        descriptions = [line for line in lines if line.startswith("DESCRIPTION:")]
        self.assertEqual(
            descriptions[0],
            "DESCRIPTION:Forecast for Springfield. Status: Moderate. Sunny.\\n"
            "Pollutants (µg/m³): PM2.5: 12\\, O3: 55",
        )
        self.assertEqual(
            descriptions[1],
            "DESCRIPTION:Forecast for Springfield. Status: Good. Breezy.\\n"
            "Pollutants (µg/m³): PM2.5: 40",
        )

    def test_zero_and_absent_pollutants_are_omitted(self):
        day = make_record(dt.date(2024, 6, 1), 10, "Calm.", PollutantReading(pm2_5=0, co=0))
        lines = _unfold(encode(_forecast(days=[day]), GENERATED_AT))
        description = next(line for line in lines if line.startswith("DESCRIPTION:"))
        self.assertNotIn("Pollutants", description)

    def test_deterministic(self):
        forecast = _forecast()
        self.assertEqual(encode(forecast, GENERATED_AT), encode(forecast, GENERATED_AT))

    def test_naive_generated_at_is_utc(self):
        naive = GENERATED_AT.replace(tzinfo=None)
        self.assertEqual(encode(_forecast(), naive), encode(_forecast(), GENERATED_AT))

    def test_pollutant_change_only_touches_its_summary(self):
        before = _unfold(encode(_forecast(), GENERATED_AT))
        changed_days = [
            make_record(dt.date(2024, 6, 1), 55, "Sunny.", PollutantReading(pm2_5=13, o3=55)),
            make_record(dt.date(2024, 6, 2), 40, "Breezy.", PollutantReading(pm2_5=40)),
        ]
        after = _unfold(encode(_forecast(days=changed_days), GENERATED_AT))

        diff = [(a, b) for a, b in zip(before, after) if a != b]
        self.assertEqual(len(before), len(after))
        self.assertEqual(len(diff), 1)
        self.assertIn("PM2.5: 12", diff[0][0])
        self.assertIn("PM2.5: 13", diff[0][1])

    def test_escaping_keeps_block_count(self):
        day = make_record(dt.date(2024, 6, 1), 60, "Haze, smoke; and\nmore \\ text.")
        other = make_record(dt.date(2024, 6, 2), 30, "Clear.")
        data = encode(_forecast(days=[day, other], city="Paris, France"), GENERATED_AT)
        lines = _unfold(data)

        self.assertEqual(lines.count("BEGIN:VEVENT"), 2)
        self.assertIn("X-WR-CALNAME:AQI Forecast - Paris\\, France", lines)
        description = next(line for line in lines if line.startswith("DESCRIPTION:"))
        self.assertIn("Haze\\, smoke\\; and\\nmore \\\\ text.", description)
        # every physical line is a property, a block marker or a fold continuation
        for line in data.decode("utf-8").split("\r\n")[:-1]:
            self.assertTrue(line.startswith(" ") or ":" in line, line)

    def test_long_lines_are_folded(self):
        day = make_record(dt.date(2024, 6, 1), 60, "Long description " * 20)
        data = encode(_forecast(days=[day]), GENERATED_AT)
        for line in data.split(b"\r\n"):
            self.assertLessEqual(len(line), MAX_LINE_OCTETS)
        self.assertIn("Long description " * 3, "\r\n".join(_unfold(data)))

    def test_duplicate_dates_rejected(self):
        days = [make_record(dt.date(2024, 6, 1), 10), make_record(dt.date(2024, 6, 1), 20)]
        with self.assertRaises(EncodingError):
            encode_records("X", days, GENERATED_AT)

    def test_unsorted_dates_rejected(self):
        days = [make_record(dt.date(2024, 6, 2), 10), make_record(dt.date(2024, 6, 1), 20)]
        with self.assertRaises(EncodingError):
            encode_records("X", days, GENERATED_AT)

    def test_empty_forecast_has_no_events(self):
        lines = _unfold(encode(Forecast(city="Nowhere"), GENERATED_AT))
        self.assertNotIn("BEGIN:VEVENT", lines)
        self.assertEqual(lines[-2], "END:VCALENDAR")


class TestHelpers(unittest.TestCase):
    def test_escape_text(self):
        self.assertEqual(escape_text("a,b;c\\d\r\ne\rf"), "a\\,b\\;c\\\\d\\ne\\nf")

    def test_fold_line_respects_utf8_boundaries(self):
        line = "SUMMARY:" + "\U0001F7E2" * 40
        pieces = fold_line(line)
        self.assertGreater(len(pieces), 1)
        for piece in pieces:
            self.assertLessEqual(len(piece.encode("utf-8")), MAX_LINE_OCTETS)
        self.assertEqual(pieces[0] + "".join(p[1:] for p in pieces[1:]), line)

    def test_short_line_not_folded(self):
        self.assertEqual(fold_line("VERSION:2.0"), ["VERSION:2.0"])

    def test_format_value(self):
        self.assertEqual(format_value(12.0), "12")
        self.assertEqual(format_value(12), "12")
        self.assertEqual(format_value(12.5), "12.5")

    def test_pollutant_summary_order(self):
        reading = PollutantReading(co=300.5, pm2_5=12, no2=0, pm10=30)
        self.assertEqual(pollutant_summary(reading), "PM2.5: 12, PM10: 30, CO: 300.5")
        self.assertEqual(pollutant_summary(None), "")

    def test_calendar_filename(self):
        self.assertEqual(calendar_filename("New  York City"), "aqi-New-York-City.ics")
        self.assertEqual(calendar_filename("Paris"), "aqi-Paris.ics")

    def test_content_type(self):
        self.assertEqual(CALENDAR_CONTENT_TYPE, "text/calendar; charset=utf-8")


if __name__ == "__main__":
    unittest.main()

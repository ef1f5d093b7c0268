import datetime as dt
import unittest

from pydantic import ValidationError

from aqicast.domain import DataQuality, Forecast, PollutantKind, PollutantReading
from aqicast.severity import make_record


class TestPollutantReading(unittest.TestCase):
    def test_present_in_display_order(self):
        reading = PollutantReading(co=1.0, pm2_5=2.0, o3=0.0)
        self.assertEqual(
            list(reading.present()),
            [(PollutantKind.PM2_5, 2.0), (PollutantKind.O3, 0.0), (PollutantKind.CO, 1.0)],
        )
        self.assertEqual(PollutantKind.PM2_5.display_name, "PM2.5")

    def test_with_fallback_only_fills_absent_values(self):
        live = PollutantReading(pm2_5=80.0, o3=0.0)
        daily = PollutantReading(pm2_5=40.0, o3=30.0, no2=7.0)
        merged = live.with_fallback(daily)
        self.assertEqual(merged, PollutantReading(pm2_5=80.0, o3=0.0, no2=7.0))
        self.assertIs(live.with_fallback(None), live)

    def test_is_empty(self):
        self.assertTrue(PollutantReading().is_empty())
        self.assertFalse(PollutantReading(co=0.0).is_empty())

    def test_unknown_fields_rejected(self):
        with self.assertRaises(ValidationError):
            PollutantReading(so2=4.0)


class TestForecast(unittest.TestCase):
    def test_days_must_be_ascending_and_unique(self):
        d1, d2 = dt.date(2024, 6, 1), dt.date(2024, 6, 2)
        with self.assertRaises(ValidationError):
            Forecast(city="X", days=[make_record(d2, 10), make_record(d1, 10)])
        with self.assertRaises(ValidationError):
            Forecast(city="X", days=[make_record(d1, 10), make_record(d1, 20)])

    def test_records_are_immutable(self):
        record = make_record(dt.date(2024, 6, 1), 10)
        with self.assertRaises(ValidationError):
            record.aqi = 99

    def test_is_authoritative_tracks_quality(self):
        self.assertTrue(Forecast(city="X").is_authoritative)
        self.assertFalse(Forecast(city="X", quality=DataQuality.FULLY_ESTIMATED).is_authoritative)
        dumped = Forecast(city="X", quality=DataQuality.PARTIALLY_ESTIMATED).model_dump(mode="json")
        self.assertEqual(dumped["quality"], "partially_estimated")
        self.assertFalse(dumped["is_authoritative"])


if __name__ == "__main__":
    unittest.main()

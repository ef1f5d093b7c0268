import datetime as dt
import unittest

from aqicast.domain import HealthStatus, SeverityMarker
from aqicast.severity import classify, make_record, marker_for, status_for


class TestClassify(unittest.TestCase):
    def test_band_boundaries(self):
        cases = [
            (0, HealthStatus.GOOD, SeverityMarker.GREEN),
            (50, HealthStatus.GOOD, SeverityMarker.GREEN),
            (51, HealthStatus.MODERATE, SeverityMarker.YELLOW),
            (100, HealthStatus.MODERATE, SeverityMarker.YELLOW),
            (101, HealthStatus.UNHEALTHY_FOR_SENSITIVE, SeverityMarker.ORANGE),
            (150, HealthStatus.UNHEALTHY_FOR_SENSITIVE, SeverityMarker.ORANGE),
            (151, HealthStatus.UNHEALTHY, SeverityMarker.RED),
            (200, HealthStatus.UNHEALTHY, SeverityMarker.RED),
            (201, HealthStatus.VERY_UNHEALTHY, SeverityMarker.PURPLE),
            (300, HealthStatus.VERY_UNHEALTHY, SeverityMarker.PURPLE),
            (301, HealthStatus.HAZARDOUS, SeverityMarker.BROWN),
        ]
        for aqi, status, marker in cases:
            with self.subTest(aqi=aqi):
                self.assertEqual(classify(aqi), (status, marker))

    def test_out_of_range_values_are_not_clamped(self):
        self.assertEqual(status_for(-20), HealthStatus.GOOD)
        self.assertEqual(status_for(99999), HealthStatus.HAZARDOUS)
        self.assertEqual(marker_for(99999), SeverityMarker.BROWN)

    def test_status_labels(self):
        self.assertEqual(status_for(120).value, "Unhealthy for Sensitive Groups")
        self.assertEqual(status_for(250).value, "Very Unhealthy")

    def test_make_record_derives_status_from_index(self):
        record = make_record(dt.date(2024, 6, 1), 85, "desc")
        self.assertEqual(record.status, HealthStatus.MODERATE)
        self.assertEqual(record.marker, SeverityMarker.YELLOW)
        self.assertIsNone(record.pollutants)


if __name__ == "__main__":
    unittest.main()

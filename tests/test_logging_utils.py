import logging
import unittest

from utils import logging_utils
from utils.logging_utils import build_logging_config, get_tagged_logger, mask_token_url


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.records.append(record)


class TestLoggingUtils(unittest.TestCase):
    def test_build_logging_config_has_expected_handlers_and_filters(self):
        cfg = build_logging_config(job_name="jobtest")
        self.assertIn("handlers", cfg)
        self.assertIn("stdout", cfg["handlers"])
        self.assertIn("stderr", cfg["handlers"])
        self.assertIn("filters", cfg)
        # job_name filter should carry configured job
        self.assertEqual(cfg["filters"]["job_name"]["job_name"], "jobtest")

    def test_get_tagged_logger_injects_tag(self):
        handler = _ListHandler()
        logger = get_tagged_logger("aqicast.test", tag="custom_tag")
        base_logger = logger.logger
        base_logger.setLevel(logging.DEBUG)
        base_logger.addHandler(handler)
        base_logger.propagate = False
        try:
            logger.info("hello world", extra={"uid": 1451})

            self.assertTrue(handler.records)
            record = handler.records[-1]
            self.assertEqual(record.tag, "custom_tag")
            self.assertEqual(record.uid, 1451)
        finally:
            base_logger.removeHandler(handler)
            base_logger.propagate = True

    def test_setup_logging_override_applies_filters(self):
        root = logging.getLogger()
        orig_handlers = root.handlers[:]
        orig_level = root.level
        try:
            logging_utils.setup_logging(level="INFO", job_name="jobtest", override_existing=True)
            self.assertTrue(root.handlers)
            # Check that at least one handler has JobNameFilter applied
            self.assertTrue(
                any(
                    any(f.__class__.__name__ == "JobNameFilter" for f in h.filters)
                    for h in root.handlers
                )
            )
        finally:
            root.handlers = orig_handlers
            root.setLevel(orig_level)
            root.propagate = True
            logging_utils._CONFIGURED = False  # reset for other tests


class TestMaskTokenUrl(unittest.TestCase):
    def test_masks_token_query_param(self):
        url = "https://api.waqi.info/feed/@1451/?token=abc123"
        self.assertEqual(mask_token_url(url), "https://api.waqi.info/feed/@1451/?token=%2A%2A%2A")

    def test_masks_only_sensitive_query_params(self):
        url = "https://host/path?password=abc&latitude=1.5&api_key=xyz&days=7"
        masked = mask_token_url(url)
        self.assertEqual(masked, "https://host/path?password=%2A%2A%2A&latitude=1.5&api_key=%2A%2A%2A&days=7")

    def test_leaves_urls_without_query(self):
        url = "https://air-quality-api.open-meteo.com/v1/air-quality"
        self.assertEqual(mask_token_url(url), url)


if __name__ == "__main__":
    unittest.main()

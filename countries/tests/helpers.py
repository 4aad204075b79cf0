import shutil
import tempfile
from datetime import datetime, timedelta, timezone

import requests
from django.conf import settings
from django.test import override_settings


class FakeResp:
    def __init__(self, json_data=None, status=200, invalid_json=False):
        self._json = json_data
        self.status_code = status
        self.invalid_json = invalid_json

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._json

    def raise_for_status(self):
        if not (200 <= self.status_code < 300):
            raise requests.exceptions.HTTPError(f"{self.status_code} Server Error")


def feed_side_effect(countries, rates, countries_resp=None, rates_resp=None):
    """Build a requests.get side effect answering both feed URLs."""
    def side_effect(url, timeout=None):
        if url == settings.COUNTRIES_API_URL:
            return countries_resp or FakeResp(countries)
        if url == settings.EXCHANGE_API_URL:
            return rates_resp or FakeResp({"result": "success", "base_code": "USD", "rates": rates})
        raise AssertionError(f"unexpected url {url}")
    return side_effect


class StepClock:
    """Returns a strictly increasing aware datetime on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2025, 10, 22, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        now = self.current
        self.current += self.step
        return now


class TempCacheMixin:
    """Point SUMMARY_CACHE_DIR at a throwaway directory for each test."""

    def setUp(self):
        super().setUp()
        self.cache_dir = tempfile.mkdtemp(prefix="summary-cache-")
        self.addCleanup(shutil.rmtree, self.cache_dir, True)
        override = override_settings(SUMMARY_CACHE_DIR=self.cache_dir)
        override.enable()
        self.addCleanup(override.disable)

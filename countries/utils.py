import logging
import os
import random
from datetime import datetime, timezone

import requests
from django.conf import settings
from requests.exceptions import RequestException

from .exceptions import SourceUnavailable

logger = logging.getLogger(__name__)

MULTIPLIER_MIN = 1000
MULTIPLIER_MAX = 2000


class Config:
    SUMMARY_FILENAME = "summary.png"

    @property
    def countries_api(self) -> str:
        return settings.COUNTRIES_API_URL

    @property
    def exchange_api(self) -> str:
        return settings.EXCHANGE_API_URL

    @property
    def timeout(self) -> float:
        return settings.REQUEST_TIMEOUT

    @property
    def cache_dir(self) -> str:
        return os.path.abspath(settings.SUMMARY_CACHE_DIR)

    @property
    def cache_path(self) -> str:
        """Return absolute cache directory path (writable)."""
        path = self.cache_dir
        os.makedirs(path, exist_ok=True)
        return path


config = Config()


def _get_json(source_id, url):
    try:
        resp = requests.get(url, timeout=config.timeout)
        resp.raise_for_status()
        return resp.json()
    except RequestException as e:
        logger.error("Fetch failed for %s (%s): %s", source_id, url, e)
        raise SourceUnavailable(source_id, str(e)) from e
    except ValueError as e:
        # body was not JSON
        logger.error("Undecodable payload from %s (%s): %s", source_id, url, e)
        raise SourceUnavailable(source_id, "invalid JSON payload") from e


def fetch_countries():
    data = _get_json("countries", config.countries_api)
    if not isinstance(data, list):
        raise SourceUnavailable("countries", "expected a list of countries")
    return data


def fetch_exchange_rates():
    """
    Return the rate table as {currency_code: rate}.
    Entries that are not positive numbers are dropped.
    """
    data = _get_json("exchange_rates", config.exchange_api)
    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        raise SourceUnavailable("exchange_rates", "payload has no 'rates' mapping")

    table = {}
    for code, value in rates.items():
        try:
            rate = float(value)
        except (TypeError, ValueError):
            continue
        if rate > 0:
            table[code] = rate
    return table


def fetch_sources():
    """Fetch both feeds; either failure raises SourceUnavailable before anything is written."""
    countries = fetch_countries()
    rates = fetch_exchange_rates()
    logger.info("Fetched %d countries and %d exchange rates", len(countries), len(rates))
    return countries, rates


def make_multiplier():
    return random.randint(MULTIPLIER_MIN, MULTIPLIER_MAX)


def get_summary_image_path(create=True):
    """
    Return full path to the summary image. Readers pass create=False so a
    lookup never creates the cache directory.
    """
    directory = config.cache_path if create else config.cache_dir
    return os.path.join(directory, config.SUMMARY_FILENAME)


def get_now():
    """Return current UTC datetime (aware)."""
    return datetime.now(timezone.utc)

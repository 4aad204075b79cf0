"""
Turn one raw country entry plus the rate table into the values stored on a
Country row.

GDP rules:
  - population and rate known  -> population * multiplier / rate
  - population known, no currency list at all -> 0
  - anything else -> None
"""
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from . import utils

logger = logging.getLogger(__name__)

# largest value a BigIntegerField column accepts
MAX_POPULATION = 2 ** 63 - 1


@dataclass(frozen=True)
class EnrichedCountry:
    name: str
    capital: Optional[str] = None
    region: Optional[str] = None
    population: Optional[int] = None
    flag_url: Optional[str] = None
    currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    estimated_gdp: Optional[float] = None

    def as_fields(self):
        """Column values without the key, as expected by update_or_create(defaults=...)."""
        fields = asdict(self)
        fields.pop("name")
        return fields


def _text(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _population(value):
    # bool is an int subclass; True is not a population
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and 0 <= value <= MAX_POPULATION:
        return value
    return None


def _currency_code(currencies):
    """Return (listed, code): whether any currency was listed, and the first one's code."""
    if not isinstance(currencies, list) or not currencies:
        return False, None
    first = currencies[0]
    code = first.get("code") if isinstance(first, dict) else None
    return True, _text(code)


def enrich_country(entry, rates, multiplier: Callable[[], int] = utils.make_multiplier):
    """
    Build an EnrichedCountry from a feed entry.

    Returns None when the entry has no usable name, since it cannot be keyed.
    `multiplier` is only called when a GDP estimate is actually computed.
    """
    if not isinstance(entry, dict):
        return None
    name = _text(entry.get("name"))
    if name is None:
        return None

    population = _population(entry.get("population"))
    currency_listed, currency_code = _currency_code(entry.get("currencies"))

    exchange_rate = None
    if currency_code is not None:
        rate = rates.get(currency_code)
        if isinstance(rate, (int, float)) and not isinstance(rate, bool) and rate > 0:
            exchange_rate = float(rate)

    if population is not None and exchange_rate is not None:
        estimated_gdp = population * multiplier() / exchange_rate
    elif population is not None and not currency_listed:
        estimated_gdp = 0.0
    else:
        estimated_gdp = None

    return EnrichedCountry(
        name=name,
        capital=_text(entry.get("capital")),
        region=_text(entry.get("region")),
        population=population,
        flag_url=_text(entry.get("flag")),
        currency_code=currency_code,
        exchange_rate=exchange_rate,
        estimated_gdp=estimated_gdp,
    )


def enrich_all(entries, rates, multiplier: Callable[[], int] = utils.make_multiplier):
    """
    Enrich every entry, keyed by name. A later entry with the same name
    replaces the earlier one; nameless entries are skipped.
    """
    records = {}
    skipped = 0
    for entry in entries:
        record = enrich_country(entry, rates, multiplier)
        if record is None:
            skipped += 1
            continue
        records.pop(record.name, None)
        records[record.name] = record

    if skipped:
        logger.warning("Skipped %d country entries without a usable name", skipped)
    return list(records.values())

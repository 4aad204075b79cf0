from unittest import mock

from django.db import IntegrityError, OperationalError
from django.test import TestCase

from countries.enrichment import EnrichedCountry
from countries.exceptions import StoreUnavailable
from countries.models import Country
from countries.store import CountryStore, write_records

from .helpers import StepClock


class CountryStoreTests(TestCase):

    def setUp(self):
        self.clock = StepClock()
        self.store = CountryStore(clock=self.clock)

    def test_upsert_creates_then_overwrites_every_field(self):
        first = EnrichedCountry(
            name="Testland", capital="Testville", region="Test Region", population=1000,
            flag_url="http://example.com/flag.png", currency_code="TST",
            exchange_rate=10.0, estimated_gdp=150000.0,
        )
        country, created = self.store.upsert(first)
        self.assertTrue(created)
        first_stamp = country.last_refreshed_at

        country, created = self.store.upsert(EnrichedCountry(name="Testland", population=1200))
        self.assertFalse(created)

        country.refresh_from_db()
        self.assertEqual(Country.objects.count(), 1)
        self.assertEqual(country.population, 1200)
        # overwritten, not merged
        self.assertIsNone(country.capital)
        self.assertIsNone(country.currency_code)
        self.assertIsNone(country.exchange_rate)
        self.assertIsNone(country.estimated_gdp)
        self.assertGreater(country.last_refreshed_at, first_stamp)

    def test_find_top_orders_by_gdp_with_nulls_last(self):
        for name, gdp in [("Nullia", None), ("Small", 10.0), ("Big", 500.0), ("Mid", 50.0), ("Zero", 0.0)]:
            self.store.upsert(EnrichedCountry(name=name, estimated_gdp=gdp))

        top = self.store.find_top("estimated_gdp", desc=True, limit=5)
        self.assertEqual([c.name for c in top], ["Big", "Mid", "Small", "Zero", "Nullia"])

        self.assertEqual([c.name for c in self.store.find_top(limit=2)], ["Big", "Mid"])

    def test_find_by_key_prefers_exact_then_case_insensitive(self):
        self.store.upsert(EnrichedCountry(name="Nigeria"))
        self.assertEqual(self.store.find_by_key("Nigeria").name, "Nigeria")
        self.assertEqual(self.store.find_by_key("nigeria").name, "Nigeria")
        self.assertIsNone(self.store.find_by_key("Atlantis"))

    def test_delete_by_key(self):
        self.store.upsert(EnrichedCountry(name="Ghana"))
        self.assertTrue(self.store.delete_by_key("ghana"))
        self.assertFalse(self.store.delete_by_key("ghana"))
        self.assertEqual(self.store.count(), 0)

    def test_filter_and_ordering(self):
        self.store.upsert(EnrichedCountry(name="A", region="Africa", currency_code="NGN", estimated_gdp=5.0))
        self.store.upsert(EnrichedCountry(name="B", region="Africa", currency_code="GHS", estimated_gdp=None))
        self.store.upsert(EnrichedCountry(name="C", region="Europe", currency_code="EUR", estimated_gdp=9.0))

        self.assertEqual([c.name for c in self.store.filter(region="africa")], ["A", "B"])
        self.assertEqual([c.name for c in self.store.filter(currency="eur")], ["C"])
        self.assertEqual([c.name for c in self.store.filter(ordering="-estimated_gdp")], ["C", "A", "B"])
        self.assertEqual([c.name for c in self.store.filter(ordering="estimated_gdp")], ["A", "C", "B"])

    def test_last_refreshed_at_is_the_latest_stamp(self):
        self.assertIsNone(self.store.last_refreshed_at())
        self.store.upsert(EnrichedCountry(name="A"))
        latest, _ = self.store.upsert(EnrichedCountry(name="B"))
        self.assertEqual(self.store.last_refreshed_at(), latest.last_refreshed_at)


class WriteRecordsTests(TestCase):

    def setUp(self):
        self.store = CountryStore(clock=StepClock())
        self.records = [EnrichedCountry(name=n, population=1) for n in ("One", "Two", "Three")]

    def test_counts_created_and_updated(self):
        Country.objects.create(name="Two")
        report = write_records(self.store, self.records)

        self.assertEqual(report.created, 2)
        self.assertEqual(report.updated, 1)
        self.assertEqual(report.written, 3)
        self.assertEqual(report.failed, [])

    def test_record_failure_does_not_block_siblings(self):
        real_upsert = self.store.upsert

        def flaky(record):
            if record.name == "Two":
                raise IntegrityError("value too long")
            return real_upsert(record)

        with mock.patch.object(self.store, "upsert", side_effect=flaky):
            with self.assertLogs("countries.store", level="WARNING"):
                report = write_records(self.store, self.records)

        self.assertEqual(report.written, 2)
        self.assertEqual(report.failed, [{"name": "Two", "details": "value too long"}])
        self.assertEqual(sorted(Country.objects.values_list("name", flat=True)), ["One", "Three"])

    def test_overflow_is_a_record_failure(self):
        real_upsert = self.store.upsert

        def overflow(record):
            if record.name == "Two":
                raise OverflowError("Python int too large to convert to SQLite INTEGER")
            return real_upsert(record)

        with mock.patch.object(self.store, "upsert", side_effect=overflow):
            with self.assertLogs("countries.store", level="WARNING"):
                report = write_records(self.store, self.records)

        self.assertEqual(report.written, 2)
        self.assertEqual([f["name"] for f in report.failed], ["Two"])

    def test_store_outage_raises_and_keeps_earlier_rows(self):
        real_upsert = self.store.upsert

        def outage(record):
            if record.name == "One":
                return real_upsert(record)
            raise OperationalError("server has gone away")

        with mock.patch.object(self.store, "upsert", side_effect=outage):
            with self.assertRaises(StoreUnavailable) as ctx:
                write_records(self.store, self.records)

        self.assertEqual(ctx.exception.stage, "writing")
        self.assertEqual(list(Country.objects.values_list("name", flat=True)), ["One"])

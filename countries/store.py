import logging
from dataclasses import dataclass, field

from django.db import DatabaseError, DataError, IntegrityError, transaction
from django.db.models import F, Max

from . import utils
from .exceptions import StoreUnavailable
from .models import Country

logger = logging.getLogger(__name__)


class CountryStore:
    """
    Persistence capability handed to the refresh pipeline and the views.

    Django keeps one connection per worker thread, so a store instance holds
    no connection state of its own.
    """

    def __init__(self, clock=utils.get_now, using="default"):
        self.clock = clock
        self.using = using

    @property
    def objects(self):
        return Country.objects.using(self.using)

    def count(self):
        return self.objects.count()

    def find_top(self, by_field="estimated_gdp", desc=True, limit=5):
        order = F(by_field).desc(nulls_last=True) if desc else F(by_field).asc(nulls_last=True)
        return list(self.objects.order_by(order, "pk")[:limit])

    def find_by_key(self, name):
        country = self.objects.filter(name=name).first()
        if country is None:
            country = self.objects.filter(name__iexact=name).order_by("pk").first()
        return country

    def filter(self, region=None, currency=None, ordering=None):
        qs = self.objects.all()
        if region:
            qs = qs.filter(region__iexact=region)
        if currency:
            qs = qs.filter(currency_code__iexact=currency)
        if ordering:
            field_name = ordering.lstrip("-")
            expr = F(field_name).desc(nulls_last=True) if ordering.startswith("-") else F(field_name).asc(nulls_last=True)
            return qs.order_by(expr, "pk")
        return qs.order_by("pk")

    def last_refreshed_at(self):
        return self.objects.aggregate(latest=Max("last_refreshed_at"))["latest"]

    def upsert(self, record):
        """
        Insert or overwrite the row named record.name. Every column is
        replaced and last_refreshed_at is stamped with the store's clock.
        """
        defaults = record.as_fields()
        defaults["last_refreshed_at"] = self.clock()
        with transaction.atomic(using=self.using):
            country, created = self.objects.update_or_create(name=record.name, defaults=defaults)
        return country, created

    def delete_by_key(self, name):
        country = self.find_by_key(name)
        if country is None:
            return False
        country.delete()
        return True


@dataclass
class WriteReport:
    created: int = 0
    updated: int = 0
    failed: list = field(default_factory=list)

    @property
    def written(self):
        return self.created + self.updated


def write_records(store, records):
    """
    Upsert every record independently.

    A record rejected by the database is logged and reported without stopping
    the rest; any other database error means the store is gone and raises
    StoreUnavailable. Rows written before that point stay written.
    """
    report = WriteReport()
    for record in records:
        try:
            _, created = store.upsert(record)
        except (IntegrityError, DataError, OverflowError) as e:
            logger.warning("Could not save %s: %s", record.name, e)
            report.failed.append({"name": record.name, "details": str(e)})
            continue
        except DatabaseError as e:
            logger.error(
                "Store unavailable after writing %d of %d countries: %s",
                report.written, len(records), e,
            )
            raise StoreUnavailable(str(e)) from e

        if created:
            report.created += 1
        else:
            report.updated += 1

    logger.info(
        "Saved %d countries (%d new, %d updated, %d failed)",
        report.written, report.created, report.updated, len(report.failed),
    )
    return report

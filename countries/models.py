from django.db import models


class Country(models.Model):
    # id — auto-generated
    name = models.CharField(max_length=200, unique=True)
    capital = models.CharField(max_length=200, null=True, blank=True)
    region = models.CharField(max_length=100, null=True, blank=True)
    # population — optional, the feed omits it for a few territories
    population = models.BigIntegerField(null=True, blank=True)
    # currency_code — null when the feed lists no currency at all
    currency_code = models.CharField(max_length=10, null=True, blank=True)
    # exchange_rate — only set when currency_code has a rate
    exchange_rate = models.FloatField(null=True, blank=True)
    # estimated_gdp — computed; null when not computable
    estimated_gdp = models.FloatField(null=True, blank=True, db_index=True)
    flag_url = models.URLField(max_length=500, null=True, blank=True)
    # last_refreshed_at — stamped by CountryStore.upsert, never by callers
    last_refreshed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name_plural = "countries"

    def __str__(self):
        return self.name

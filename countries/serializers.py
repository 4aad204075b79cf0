from rest_framework import serializers
from .models import Country


class CountrySerializer(serializers.ModelSerializer):
    class Meta:
        model = Country
        fields = [
            'id', 'name', 'capital', 'region', 'population',
            'currency_code', 'exchange_rate', 'estimated_gdp',
            'flag_url', 'last_refreshed_at'
        ]
        read_only_fields = fields


class RefreshResultSerializer(serializers.Serializer):
    """Response body of POST /countries/refresh."""
    message = serializers.SerializerMethodField()
    countries_processed = serializers.IntegerField()
    last_refreshed_at = serializers.DateTimeField(source='refreshed_at')
    duration_seconds = serializers.FloatField()
    errors = serializers.SerializerMethodField()

    def get_message(self, result):
        return "Countries refreshed successfully"

    def get_errors(self, result):
        # show only first few
        return result.failed[:5]


class StatusSerializer(serializers.Serializer):
    total_countries = serializers.IntegerField()
    last_refreshed_at = serializers.DateTimeField(allow_null=True)

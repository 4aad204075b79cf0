import logging

from django.db import DatabaseError
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import utils
from .exceptions import SourceUnavailable, StoreUnavailable
from .refresh import RefreshOrchestrator
from .serializers import CountrySerializer, RefreshResultSerializer, StatusSerializer
from .store import CountryStore

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    "gdp_desc": "-estimated_gdp",
    "gdp_asc": "estimated_gdp",
    "name_asc": "name",
    "name_desc": "-name",
    "population_desc": "-population",
    "population_asc": "population",
}
ALLOWED_FILTERS = ("region", "currency", "sort")


def get_store():
    return CountryStore()


def internal_error():
    return Response({"error": "Internal server error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
def refresh_countries(request):
    """
    POST /countries/refresh
    Fetch countries and exchange rates, then upsert every country and
    regenerate the summary image.
    """
    try:
        result = RefreshOrchestrator(get_store()).run()
    except SourceUnavailable as e:
        return Response(
            {"error": "External data source unavailable", "details": e.details},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    except StoreUnavailable:
        return internal_error()

    return Response(RefreshResultSerializer(result).data, status=status.HTTP_200_OK)


@api_view(['GET'])
def list_countries(request):
    """
    GET /countries
    Filters:
      - ?region=<region>, ?currency=<code> (case-insensitive)
    Sorting:
      - ?sort=gdp_desc | gdp_asc | name_asc | name_desc | population_desc | population_asc
    Default ordering is by id.
    """
    for key in request.GET.keys():
        if key not in ALLOWED_FILTERS:
            return Response(
                {"error": "Validation failed", "details": {key: "is not a valid filter"}},
                status=status.HTTP_400_BAD_REQUEST,
            )

    sort_param = request.GET.get("sort")
    if sort_param and sort_param not in SORT_OPTIONS:
        return Response(
            {"error": "Validation failed",
             "details": {"sort": f"must be one of {', '.join(SORT_OPTIONS)}"}},
            status=status.HTTP_400_BAD_REQUEST,
        )

    try:
        qs = get_store().filter(
            region=request.GET.get("region"),
            currency=request.GET.get("currency"),
            ordering=SORT_OPTIONS.get(sort_param),
        )
        data = CountrySerializer(qs, many=True).data
    except DatabaseError:
        logger.exception("Listing countries failed")
        return internal_error()

    return Response(data)


@api_view(['GET', 'DELETE'])
def country_detail(request, name):
    """
    GET /countries/:name  -> return 404 JSON if not found
    DELETE /countries/:name -> delete, return 204 or 404
    """
    store = get_store()
    try:
        if request.method == 'GET':
            country = store.find_by_key(name)
            if country is None:
                return Response({"error": "Country not found"}, status=status.HTTP_404_NOT_FOUND)
            return Response(CountrySerializer(country).data)

        deleted = store.delete_by_key(name)
    except DatabaseError:
        logger.exception("Lookup of country %s failed", name)
        return internal_error()

    if not deleted:
        return Response({"error": "Country not found"}, status=status.HTTP_404_NOT_FOUND)
    logger.info("Deleted country %s", name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
def get_status(request):
    """
    GET /status -> { total_countries, last_refreshed_at }
    last_refreshed_at is the max(last_refreshed_at) across records (or null)
    """
    store = get_store()
    try:
        payload = {"total_countries": store.count(), "last_refreshed_at": store.last_refreshed_at()}
    except DatabaseError:
        logger.exception("Reading status failed")
        return internal_error()
    return Response(StatusSerializer(payload).data)


@api_view(['GET'])
def get_summary_image(request):
    """
    GET /countries/image
    Serve the summary image at utils.get_summary_image_path().
    If not found, return a JSON 404.
    """
    path = utils.get_summary_image_path(create=False)
    try:
        fh = open(path, 'rb')
    except FileNotFoundError:
        return Response({"error": "Summary image not found"}, status=status.HTTP_404_NOT_FOUND)
    return FileResponse(fh, content_type='image/png')

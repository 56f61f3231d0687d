from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from cafemod.errors import PlaceLookupError
from cafemod.models.submission import PlaceDetails
from cafemod.services.place_lookup import (
    GoogleMapsLookup,
    extract_coordinates,
    extract_place_name,
    is_valid_google_maps_url,
)

PLACE_URL = "https://www.google.com/maps/place/Blue+Bottle+Coffee/@37.7763,-122.4232,17z"


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def lookup(sleep):
    return GoogleMapsLookup(timeout=5.0, max_attempts=3, base_delay=2.0, sleep=sleep)


def _patched_client(response=None, side_effect=None):
    patcher = patch("cafemod.services.place_lookup.httpx.AsyncClient")
    mock_client_cls = patcher.start()
    mock_client = AsyncMock()
    mock_client.get = AsyncMock(return_value=response, side_effect=side_effect)
    mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return patcher


def _response(url, status_code=200, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.url = url
    response.text = text
    return response


@pytest.mark.parametrize(
    "url,valid",
    [
        (PLACE_URL, True),
        ("https://maps.google.com/maps/search/cafe+near+me", True),
        ("https://www.google.com/search?q=blue+bottle", False),
        ("https://example.com/maps/place/Blue+Bottle", False),
        ("https://evilgoogle.com/maps/place/Blue+Bottle", False),
        ("ftp://www.google.com/maps/place/Blue+Bottle", False),
        ("not a url", False),
    ],
)
def test_is_valid_google_maps_url(url, valid):
    assert is_valid_google_maps_url(url) is valid


def test_extract_coordinates_formats():
    assert extract_coordinates(PLACE_URL) == (37.7763, -122.4232)
    assert extract_coordinates(
        "https://www.google.com/maps/place/X/@37.0,-122.0,17z/data=!3d37.7763!4d-122.4232"
    ) == (37.7763, -122.4232)
    assert extract_coordinates("https://www.google.com/maps/search/?q=37.5,-122.3") == (37.5, -122.3)
    assert extract_coordinates("https://www.google.com/maps/place/Nowhere") is None


def test_extract_place_name():
    assert extract_place_name(PLACE_URL) == "Blue Bottle Coffee"
    assert extract_place_name("https://www.google.com/maps/@37.7,-122.4,17z") is None


@pytest.mark.asyncio
async def test_fetch_reads_name_pin_and_address(lookup):
    html = '<meta property="og:description" content="315 Linden St, San Francisco, CA">'
    patcher = _patched_client(_response(PLACE_URL, text=html))
    try:
        place = await lookup.fetch("https://maps.google.com/maps/place/short")
    finally:
        patcher.stop()

    assert place == PlaceDetails(
        name="Blue Bottle Coffee",
        address="315 Linden St, San Francisco, CA",
        latitude=37.7763,
        longitude=-122.4232,
    )


@pytest.mark.asyncio
async def test_fetch_falls_back_to_og_title(lookup):
    final_url = "https://www.google.com/maps/@37.7763,-122.4232,17z"
    html = '<meta property="og:title" content="Sightglass Coffee · 270 7th St">'
    patcher = _patched_client(_response(final_url, text=html))
    try:
        place = await lookup.fetch(final_url)
    finally:
        patcher.stop()
    assert place.name == "Sightglass Coffee"


@pytest.mark.asyncio
async def test_fetch_non_200_raises(lookup):
    patcher = _patched_client(_response(PLACE_URL, status_code=404))
    try:
        with pytest.raises(PlaceLookupError):
            await lookup.fetch(PLACE_URL)
    finally:
        patcher.stop()


@pytest.mark.asyncio
async def test_fetch_timeout_raises_lookup_error(lookup):
    patcher = _patched_client(side_effect=httpx.TimeoutException("timeout"))
    try:
        with pytest.raises(PlaceLookupError):
            await lookup.fetch(PLACE_URL)
    finally:
        patcher.stop()


@pytest.mark.asyncio
async def test_lookup_retries_with_exponential_backoff(lookup, sleep):
    place = PlaceDetails(name="X", address="", latitude=1.0, longitude=2.0)
    fetch = AsyncMock(side_effect=[PlaceLookupError("a"), PlaceLookupError("b"), place])
    with patch.object(lookup, "fetch", fetch):
        assert await lookup.lookup(PLACE_URL) == place
    assert fetch.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]


@pytest.mark.asyncio
async def test_lookup_gives_up_after_max_attempts(lookup, sleep):
    fetch = AsyncMock(side_effect=PlaceLookupError("down"))
    with patch.object(lookup, "fetch", fetch):
        with pytest.raises(PlaceLookupError, match="after 3 attempts"):
            await lookup.lookup(PLACE_URL)
    assert fetch.await_count == 3
    assert sleep.await_count == 2

import asyncio
import logging
import re
from html import unescape
from urllib.parse import parse_qs, unquote_plus, urlparse

import httpx

from cafemod.errors import PlaceLookupError
from cafemod.models.submission import PlaceDetails

logger = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_AT_COORDS = re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+)")
_BANG_COORDS = re.compile(r"!3d(-?\d+\.\d+)!4d(-?\d+\.\d+)")
_Q_COORDS = re.compile(r"^(-?\d+\.\d+),\s*(-?\d+\.\d+)$")
_META = re.compile(r'<meta[^>]+(?:property|itemprop)="(og:title|og:description)"[^>]+content="([^"]*)"')


def is_valid_google_maps_url(url: str) -> bool:
    """Accept google.com place or search links, e.g. https://www.google.com/maps/place/..."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    if parsed.hostname != "google.com" and not parsed.hostname.endswith(".google.com"):
        return False
    return "/maps/place/" in parsed.path or "/maps/search/" in parsed.path


def extract_coordinates(url: str) -> tuple[float, float] | None:
    """(lat, lng) from a Maps URL: `!3d..!4d..` pin first, then `@lat,lng`, then `?q=lat,lng`."""
    match = _BANG_COORDS.search(url) or _AT_COORDS.search(url)
    if match:
        return float(match.group(1)), float(match.group(2))
    query = parse_qs(urlparse(url).query).get("q")
    if query:
        match = _Q_COORDS.match(query[0].strip())
        if match:
            return float(match.group(1)), float(match.group(2))
    return None


def extract_place_name(url: str) -> str | None:
    segments = [s for s in urlparse(url).path.split("/") if s]
    for marker in ("place", "search"):
        if marker in segments:
            idx = segments.index(marker)
            if idx + 1 < len(segments) and not segments[idx + 1].startswith("@"):
                return unquote_plus(segments[idx + 1]).strip() or None
    return None


def _parse_meta(html: str) -> dict[str, str]:
    return {key: unescape(value).strip() for key, value in _META.findall(html)}


class GoogleMapsLookup:
    def __init__(
        self,
        timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        sleep=asyncio.sleep,
    ) -> None:
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    async def fetch(self, url: str) -> PlaceDetails:
        """
        Resolve a Maps link and read the place name, address and pin.
        Raises PlaceLookupError if the page cannot be fetched or lacks a name or pin.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise PlaceLookupError(f"request failed: {exc}") from exc
        if response.status_code != 200:
            raise PlaceLookupError(f"unexpected status {response.status_code}")

        final_url = str(response.url)
        meta = _parse_meta(response.text)
        coords = extract_coordinates(final_url) or extract_coordinates(url)
        name = extract_place_name(final_url) or extract_place_name(url)
        if not name and meta.get("og:title"):
            # og:title reads "Name · Address"
            name = meta["og:title"].split("·")[0].strip()
        if not name:
            raise PlaceLookupError("no place name on page")
        if coords is None:
            raise PlaceLookupError("no coordinates in link")

        address = meta.get("og:description", "")
        return PlaceDetails(name=name, address=address, latitude=coords[0], longitude=coords[1])

    async def lookup(self, url: str) -> PlaceDetails:
        """fetch() with exponential backoff: base_delay, 2x, 4x ... between attempts."""
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self.fetch(url)
            except PlaceLookupError as exc:
                last_error = exc
                logger.info(
                    "[lookup] attempt failed | attempt=%d/%d | url=%s | error=%s",
                    attempt, self._max_attempts, url, exc,
                )
                if attempt < self._max_attempts:
                    await self._sleep(self._base_delay * 2 ** (attempt - 1))
        raise PlaceLookupError(
            f"failed after {self._max_attempts} attempts: {last_error}"
        ) from last_error

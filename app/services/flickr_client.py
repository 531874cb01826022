"""Flickr REST client: photo search near a coordinate and raw image download."""
import logging
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from app.schemas.flickr import SearchPage, SearchPhoto, SearchResponse
from app.services.http_client import build_request, parse_json, validate_response
from app.utils.exceptions import MalformedSearchResponse, TransportError

logger = logging.getLogger(__name__)

SEARCH_METHOD = "flickr.photos.search"
DEFAULT_BASE_URL = "https://api.flickr.com/services/rest/"


class FlickrClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        per_page: int = 24,
    ):
        self.http_client = http_client
        self.api_key = api_key
        self.base_url = base_url
        self.per_page = per_page

    async def perform_get(
        self,
        url: str,
        parameters: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bytes:
        try:
            request = build_request(url, "GET", parameters, headers)
            response = await self.http_client.send(request)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc
        return validate_response(response.status_code, response.content)

    def search_parameters(self, latitude: float, longitude: float, page: int | None = None) -> dict:
        parameters = {
            "method": SEARCH_METHOD,
            "api_key": self.api_key,
            "format": "json",
            "nojsoncallback": 1,  # raw json, no callback wrapper
            "per_page": self.per_page,
            "lat": latitude,
            "lon": longitude,
            "extras": "url_m",
            "media": "photos",
        }
        if page is not None:
            parameters["page"] = page
        return parameters

    async def search(self, latitude: float, longitude: float, page: int | None = None) -> SearchPage:
        """Search photos near a coordinate and return one page of results in server order."""
        logger.info("Searching photos near lat=%s lon=%s page=%s", latitude, longitude, page)
        data = await self.perform_get(self.base_url, self.search_parameters(latitude, longitude, page))
        result = parse_json(data)

        try:
            parsed = SearchResponse.model_validate(result)
        except ValidationError as exc:
            if isinstance(result, dict) and result.get("stat") == "fail":
                raise MalformedSearchResponse(
                    f"Search failed: {result.get('message', 'unknown error')}"
                ) from exc
            raise MalformedSearchResponse() from exc

        logger.info(
            "Search returned %d photos (page %d of %d)",
            len(parsed.photos.photo), parsed.photos.page, parsed.photos.pages,
        )
        return parsed.photos

    async def search_photos(self, latitude: float, longitude: float, page: int | None = None) -> list[SearchPhoto]:
        page_result = await self.search(latitude, longitude, page)
        return page_result.photo

    async def download_image(self, image_url: str) -> bytes:
        return await self.perform_get(image_url)

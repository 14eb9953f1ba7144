"""Client utilities for the Google Places API (New)."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://places.googleapis.com/v1"

SEARCH_FIELD_MASK = ",".join(
    (
        "places.id",
        "places.displayName",
        "places.formattedAddress",
        "places.location",
        "places.rating",
        "places.userRatingCount",
        "places.types",
        "places.businessStatus",
        "places.nationalPhoneNumber",
        "places.websiteUri",
        "places.googleMapsUri",
        "nextPageToken",
    )
)
DETAILS_FIELD_MASK = ",".join(
    (
        "id",
        "displayName",
        "formattedAddress",
        "location",
        "rating",
        "userRatingCount",
        "types",
        "businessStatus",
        "nationalPhoneNumber",
        "websiteUri",
        "googleMapsUri",
        "regularOpeningHours",
    )
)

TRANSIENT_STATUS_CODES = {429, 403}


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlacesRateLimitError(GooglePlacesError):
    """Rate limit still in effect after the configured retries."""


class PlacesPermissionError(GooglePlacesError):
    """Key rejected or API disabled after the configured retries."""


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:300]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("status") or str(error)
    return str(payload)[:300]


class PlacesClient:
    """Thin wrapper around the Places ``searchText`` and place details endpoints.

    HTTP 429 and 403 are treated as transient: the same request is retried
    after ``retry_delay`` seconds, up to ``max_retries`` times, before the
    matching error is raised. Every other non-2xx status raises
    :class:`GooglePlacesError` immediately.
    """

    def __init__(
        self,
        api_key: str,
        *,
        max_retries: int = 1,
        retry_delay: float = 5.0,
        timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._sleep = sleep

    def _headers(self, field_mask: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self._api_key,
            "X-Goog-FieldMask": field_mask,
        }

    def _send(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        attempt = 0
        while True:
            attempt += 1
            response = _SESSION.request(method, url, timeout=self._timeout, **kwargs)
            status = response.status_code
            if 200 <= status < 300:
                return response.json()

            message = _error_message(response)
            if status in TRANSIENT_STATUS_CODES and attempt <= self._max_retries:
                logger.warning(
                    "Places request got HTTP %s (attempt %s/%s), retrying in %.1fs: %s",
                    status,
                    attempt,
                    self._max_retries + 1,
                    self._retry_delay,
                    message,
                )
                self._sleep(self._retry_delay)
                continue

            logger.error("Places request failed: status=%s, error_message=%s", status, message)
            if status == 429:
                raise PlacesRateLimitError(message, status_code=status)
            if status in {401, 403}:
                raise PlacesPermissionError(message, status_code=status)
            raise GooglePlacesError(message, status_code=status)

    def search_text(
        self,
        query: str,
        *,
        latitude: float,
        longitude: float,
        radius: float,
        included_type: Optional[str] = None,
        page_size: int = 20,
        page_token: Optional[str] = None,
        language_code: str = "ja",
        region_code: str = "JP",
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "textQuery": query,
            "languageCode": language_code,
            "regionCode": region_code,
            "pageSize": page_size,
            "locationBias": {
                "circle": {
                    "center": {"latitude": latitude, "longitude": longitude},
                    "radius": radius,
                }
            },
        }
        if included_type:
            body["includedType"] = included_type
            body["strictTypeFiltering"] = True
        if page_token:
            body["pageToken"] = page_token

        logger.debug("searchText query=%s type=%s token=%s", query, included_type, bool(page_token))
        payload = self._send(
            "POST",
            f"{_BASE_URL}/places:searchText",
            json=body,
            headers=self._headers(SEARCH_FIELD_MASK),
        )
        payload.setdefault("places", [])
        return payload

    def place_details(self, place_id: str, *, language_code: str = "ja") -> Dict[str, Any]:
        return self._send(
            "GET",
            f"{_BASE_URL}/places/{place_id}",
            params={"languageCode": language_code},
            headers=self._headers(DETAILS_FIELD_MASK),
        )

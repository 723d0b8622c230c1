"""
Manages all interactions with the frame index REST API: tag lookups, frame
detail and image downloads, and the configuration/album endpoints used for
album discovery.

The pipeline talks to the index through the asynchronous `FrameApiClient`
(aiohttp). `check_api_status` is a small synchronous probe (requests) for the
CLI and for anyone who just wants to know whether the backend is up.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, List, Optional

import aiohttp
import requests

from .exceptions import ConfigError, FrameApiError
from .models import BoundingBox, FrameMetadata, FrameTag, Tag

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = 'image/jpeg'


def _normalize_base_url(base_url: str) -> str:
    """
    Ensure the base URL has no trailing slash, so endpoints can be appended as-is.
    """
    if not base_url:
        return base_url
    return base_url.strip().rstrip('/')


def to_data_uri(base64_data: Optional[str], mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """
    Turns a base64 image payload into a displayable data URI.

    The index does not say which format it sends, so the mime type is fixed per
    deployment (`api.image_mime_type`). Empty payloads give an empty string.
    """
    if not base64_data:
        return ''
    if base64_data.startswith('data:'):
        return base64_data
    return f"data:{mime_type};base64,{base64_data}"


def _values(data: Any) -> List[int]:
    """Unwraps a `ListInt64Dto` (`{"values": [...]}`); bare lists are accepted too."""
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get('values', [])
    return [int(value) for value in data]


class FrameApiClient:
    """
    Async client for the frame index.

    The aiohttp session is created lazily inside the running event loop, so an
    instance can be built at import time and used later with `async with`.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        image_mime_type: str = DEFAULT_MIME_TYPE,
    ):
        if not base_url:
            raise ConfigError("Frame API base URL is missing. Set api.base_url in config.yaml or FRAME_API_BASE_URL.")
        self.base_url = _normalize_base_url(base_url)
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, int(retry_attempts))
        self.retry_backoff_seconds = retry_backoff_seconds
        self.image_mime_type = image_mime_type
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, app_config) -> 'FrameApiClient':
        """Builds a client from the application's config service."""
        return cls(
            base_url=app_config.api_base_url,
            timeout_seconds=app_config.get('api.timeout_seconds', 30),
            retry_attempts=app_config.get('api.retry_attempts', 3),
            retry_backoff_seconds=app_config.get('api.retry_backoff_seconds', 0.5),
            image_mime_type=app_config.get('api.image_mime_type', DEFAULT_MIME_TYPE),
        )

    async def __aenter__(self) -> 'FrameApiClient':
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            logger.info(f"Opening HTTP session for {self.base_url}")
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={'Accept': 'application/json'},
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(self, method: str, endpoint: str, payload: Any = None) -> Any:
        """
        Performs one JSON request and returns the decoded body (None for an empty body).

        GET requests are retried on connection errors and timeouts; writes are
        sent once. HTTP error statuses are never retried.

        Raises:
            FrameApiError: On a non-2xx status, an undecodable body, or a network failure.
        """
        url = f"{self.base_url}{endpoint}"
        attempts = self.retry_attempts if method == 'GET' else 1

        for attempt in range(1, attempts + 1):
            logger.debug(f"API request: {method} {url} (attempt {attempt}/{attempts})")
            try:
                session = await self._get_session()
                async with session.request(method, url, json=payload) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        logger.error(f"API error: {response.status} - {error_text}")
                        raise FrameApiError(
                            response.status,
                            f"API request failed: {response.status} {response.reason} - {error_text}",
                        )
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise FrameApiError(response.status, f"Invalid JSON in response from {endpoint}: {e}") from e
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                if attempt < attempts:
                    logger.warning(f"Request to {url} failed ({e!r}); retrying.")
                    await asyncio.sleep(self.retry_backoff_seconds * attempt)
                    continue
                raise FrameApiError(
                    0, f"Network error: cannot connect to {url}. Is the backend server running? ({e!r})"
                ) from e
            except aiohttp.ClientError as e:
                raise FrameApiError(0, f"Network error: {e}") from e

    # --- Tags ---

    async def list_tags(self) -> List[Tag]:
        data = await self._request('GET', '/keywords')
        return [Tag.from_api_response(item) for item in data or []]

    async def resolve_frames(self, tag_ids: List[int], confidence_min: float, confidence_max: float) -> List[int]:
        payload = {
            'keyword_ids': [int(tag_id) for tag_id in tag_ids],
            'confidence_min': confidence_min,
            'confidence_max': confidence_max,
        }
        return _values(await self._request('POST', '/keywords/frames', payload))

    async def rename_frame_tag(self, frame_id: int, source_tag_id: int, new_name: str) -> None:
        payload = {'SourceId': int(source_tag_id), 'Target': new_name}
        await self._request('POST', f'/frame/{frame_id}/keyword/replace', payload)

    async def delete_frame_tag(self, frame_id: int, tag_id: int) -> None:
        # The index takes a list of keyword actions; only `action` and `id` matter for a delete.
        delete_action = {
            'action': 'delete',
            'name': '',
            'confidence': 0,
            'is_entity': False,
            'origin': 0,
            'id': int(tag_id),
        }
        await self._request('POST', f'/frame/{frame_id}/keywords', [delete_action])

    # --- Frames ---

    async def get_frame_metadata(self, frame_id: int) -> FrameMetadata:
        return FrameMetadata.from_api_response(await self._request('GET', f'/frame/{frame_id}/metadata'))

    async def get_frame_thumbnail(self, frame_id: int) -> str:
        """Returns the frame's thumbnail as a base64 string."""
        data = await self._request('GET', f'/frame/{frame_id}/thumbnail')
        return (data or {}).get('thumbnail', '')

    async def get_frame_image(self, frame_id: int) -> str:
        """Returns the frame's full image as a base64 string."""
        data = await self._request('GET', f'/frame/{frame_id}')
        return (data or {}).get('frame', '')

    async def get_frame_tags(self, frame_id: int) -> List[FrameTag]:
        data = await self._request('GET', f'/frame/{frame_id}/keywords')
        return [FrameTag.from_api_response(item) for item in data or []]

    async def get_bounding_boxes(self, frame_id: int, tag_id: int) -> List[BoundingBox]:
        data = await self._request('GET', f'/frame/{frame_id}/keyword/{tag_id}/bounding-boxes')
        return [BoundingBox.from_api_response(item) for item in data or []]

    # --- Configurations and albums ---

    async def list_config_ids(self) -> List[int]:
        return _values(await self._request('GET', '/clusters/config-ids'))

    async def list_album_ids(self, config_id: int) -> List[int]:
        return _values(await self._request('GET', f'/configs/{config_id}/cluster-ids'))

    async def get_album_frame_ids(self, config_id: int, album_id: int, page_size: int = 1000, order: str = 'DESC') -> List[int]:
        payload = {
            'cluster_id': int(album_id),
            'config_id': int(config_id),
            'images_number': int(page_size),
            'order': order,
            'redundant': False,
        }
        return _values(await self._request('POST', '/clusters/frame-ids', payload))

    async def get_album_frame_count(self, config_id: int, album_id: int) -> int:
        data = await self._request('GET', f'/configs/{config_id}/clusters/{album_id}/frames-count')
        if isinstance(data, dict):
            # The index answers with an uppercase `Value`.
            data = data.get('Value', data.get('value', 0))
        return int(data or 0)

    async def get_album_thumbnail_frame_ids(self, config_id: int, album_id: int, total_frames: int) -> List[int]:
        payload = {
            'cluster_id': int(album_id),
            'config_id': int(config_id),
            'frames_count': int(total_frames),
        }
        return _values(await self._request('POST', '/clusters/frame-ids-thumbnail', payload))


@dataclass
class ApiStatus:
    base_url: str
    reachable: bool
    status_code: Optional[int] = None
    elapsed_ms: Optional[float] = None
    message: str = ''


def check_api_status(base_url: str, timeout: float = 5.0) -> ApiStatus:
    """
    Probes the index with a cheap read (the configuration list) and reports
    whether it answered. Never raises; failures are described in the result.
    """
    base_url = _normalize_base_url(base_url)
    probe_url = f"{base_url}/clusters/config-ids"
    start = time.monotonic()
    try:
        response = requests.get(probe_url, headers={'Accept': 'application/json'}, timeout=timeout)
        elapsed_ms = (time.monotonic() - start) * 1000
        if response.ok:
            return ApiStatus(base_url, True, response.status_code, elapsed_ms, f"Connected to API at {base_url}")
        return ApiStatus(
            base_url, False, response.status_code, elapsed_ms,
            f"API at {base_url} answered {response.status_code} {response.reason}",
        )
    except requests.exceptions.RequestException as e:
        logger.warning(f"API status check against {probe_url} failed: {e}")
        return ApiStatus(base_url, False, message=f"Cannot reach API at {base_url}: {e}")

from __future__ import annotations

import logging
import random
import time
from typing import Any, Optional
from urllib.parse import urlencode

import requests


logger = logging.getLogger(__name__)


_RETRY_STATUS = (420, 429, 500, 502, 503, 504)


def _parse_retry_after_seconds(headers: Any) -> float:
    try:
        raw = headers.get("Retry-After") or headers.get("X-ESI-Error-Limit-Reset")
    except Exception:
        return 0.0
    if raw is None:
        return 0.0
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return 0.0


class EsiClient:
    """Public (unauthenticated) ESI GET client with pagination and retries."""

    def __init__(
        self,
        *,
        base_url: str = "https://esi.evetech.net/latest",
        timeout_seconds: int = 15,
        user_agent: str = "eve-industry-planner",
        max_retries: int = 3,
        page_pause_seconds: float = 0.2,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = int(timeout_seconds)
        self.user_agent = user_agent
        self.max_retries = max(1, int(max_retries))
        self.page_pause_seconds = float(page_pause_seconds)

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def _url(self, endpoint: str, params: Optional[dict]) -> str:
        query = ""
        if params:
            query = "?" + urlencode(sorted(params.items()), doseq=True)
        return f"{self.base_url}{endpoint}{query}"

    def _get_once(self, url: str) -> Optional[requests.Response]:
        """GET with retries. Returns None for 403/404."""

        retries = 0
        while retries < self.max_retries:
            try:
                response = requests.get(url, headers=self._headers(), timeout=self.timeout_seconds)
            except requests.RequestException as e:
                logger.error("ESI request error %s: %s", url, e)
                retries += 1
                if retries >= self.max_retries:
                    break
                time.sleep(2 ** retries)
                continue

            if response.status_code == 200:
                return response
            if response.status_code in (403, 404):
                logger.warning("ESI GET %s: %s", response.status_code, url)
                return None
            if response.status_code in _RETRY_STATUS:
                retries += 1
                if retries >= self.max_retries:
                    break
                wait = max((2 ** retries) + random.uniform(0, 1), _parse_retry_after_seconds(response.headers))
                logger.warning("ESI GET %s on %s, retrying in %.1fs...", response.status_code, url, wait)
                time.sleep(wait)
                continue
            response.raise_for_status()

        raise RuntimeError(f"ESI GET failed after retries: {url}")

    def esi_get(self, endpoint: str, params: Optional[dict] = None, paginate: bool = False) -> Any:
        """GET an ESI endpoint. With paginate=True all X-Pages are fetched and concatenated."""

        if not paginate:
            response = self._get_once(self._url(endpoint, params))
            return response.json() if response is not None else None

        all_data: list[Any] = []
        page = 1
        while True:
            paged_params = dict(params) if params else {}
            paged_params["page"] = page
            url = self._url(endpoint, paged_params)
            response = self._get_once(url)
            if response is None:
                if page == 1:
                    break
                # Earlier pages were served, so the result would be a partial list.
                logger.error("ESI page %s of %s disappeared mid-pagination: %s", page, endpoint, url)
                raise RuntimeError(f"ESI pagination aborted at page {page}: {url}")
            data_json = response.json()
            all_data.extend(data_json if isinstance(data_json, list) else [data_json])
            total_pages = int(response.headers.get("X-Pages", "1") or 1)
            if page >= total_pages:
                break
            page += 1
            time.sleep(self.page_pause_seconds)
        return all_data

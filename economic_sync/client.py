"""
e-conomic REST client.

One client instance is bound to exactly one agreement's grant token at
construction time. The client never retries; retry policy belongs to the
caller (see ``EconomicSync``).
"""
from __future__ import annotations
from typing import Any, Optional
import requests
from loguru import logger

from . import endpoints
from .config import SyncConfig
from .errors import RemoteApiError, TransportError

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "economic-sync/1.0",
}


class EconomicClient:
    """
    HTTP client for the e-conomic REST API.

    Features:
    - Per-agreement credentials (app secret + agreement grant token)
    - Connection pooling via requests.Session
    - Fixed per-request timeout
    - Cursor pagination over ``pagination.nextPage``
    """

    def __init__(
        self,
        base_url: str,
        app_secret_token: str,
        agreement_grant_token: str,
        timeout: int = 10,
        page_size: int = 100,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.session = requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)
        self.session.headers.update({
            "X-AppSecretToken": app_secret_token,
            "X-AgreementGrantToken": agreement_grant_token,
        })

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, path: str, params: Optional[dict] = None) -> Any:
        """
        GET a resource and return the decoded JSON body.

        Args:
            path: Path relative to the base URL, or an absolute URL
            params: Optional query parameters

        Raises:
            TransportError: If the request times out or cannot connect
            RemoteApiError: If the API answers with a non-2xx status
        """
        url = self._url(path)
        logger.debug(f"API request: GET {url} {params or ''}")
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error(f"API request to {url} timed out after {self.timeout}s")
            raise TransportError(f"Request timeout: {e}") from e
        except requests.ConnectionError as e:
            logger.error(f"Failed to connect to {url}: {e}")
            raise TransportError(f"Cannot connect to API: {e}") from e
        except requests.RequestException as e:
            logger.error(f"API request failed: {e}")
            raise TransportError(f"Request failed: {e}") from e

        logger.debug(f"API response: {r.status_code} from {url}")
        if not r.ok:
            body = self._decode_body(r)
            logger.error(f"API error {r.status_code} from {url}: {body}")
            raise RemoteApiError(
                f"API returned {r.status_code} for {path}",
                status_code=r.status_code,
                body=body,
            )
        return r.json()

    @staticmethod
    def _decode_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    def fetch_all_pages(self, path: str, params: Optional[dict] = None) -> list[dict]:
        """
        Fetch every page of a collection and return the records in page order.

        Follows the server-supplied ``pagination.nextPage`` cursor until a
        response carries none.
        """
        query = {"skippages": 0, "pagesize": self.page_size}
        if params:
            query.update(params)

        results: list[dict] = []
        seen: set[str] = set()
        current: Optional[str] = path
        current_params: Optional[dict] = query
        pages = 0

        while current:
            body = self.request(current, current_params)
            pages += 1
            results.extend(body.get("collection") or [])

            next_page = (body.get("pagination") or {}).get("nextPage")
            if next_page and next_page in seen:
                logger.warning(f"Pagination cursor repeated for {path}, stopping at page {pages}")
                break
            if next_page:
                seen.add(next_page)
            current = next_page
            # nextPage already carries its own query string
            current_params = None

        logger.debug(f"Fetched {len(results)} records from {path} in {pages} page(s)")
        return results

    def get_self_info(self) -> dict:
        """
        Return the identity of the agreement behind this client's token.

        This is a network round-trip; call it once per sync pass.
        """
        body = self.request(endpoints.SELF)
        company = body.get("company") or {}
        return {
            "agreement_number": body.get("agreementNumber"),
            "company_name": company.get("name") or body.get("companyName"),
            "raw": body,
        }

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class AgreementClientFactory:
    """Builds one ``EconomicClient`` per agreement from its own grant token."""

    def __init__(self, config: SyncConfig):
        self.config = config

    def __call__(self, agreement_grant_token: str) -> EconomicClient:
        return EconomicClient(
            self.config.api_url,
            self.config.app_secret_token,
            agreement_grant_token,
            timeout=self.config.request_timeout,
            page_size=self.config.page_size,
        )

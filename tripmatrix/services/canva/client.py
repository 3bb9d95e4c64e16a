"""
HTTP client for the Canva Connect REST API.

Every outbound request of the integration goes through CanvaClient, which
opens a short-lived httpx.AsyncClient per call with a bounded timeout and
turns transport failures and non-2xx responses into NetworkError (or
OAuthTokenError for the token endpoint).
"""

import base64
import json
import logging
from typing import Any

import httpx

from tripmatrix.core.config import settings
from tripmatrix.core.errors import NetworkError, OAuthTokenError

logger = logging.getLogger(__name__)


def _api_root(base_url: str) -> str:
    base_url = base_url.rstrip("/")
    if base_url.endswith("/v1"):
        return base_url
    return f"{base_url}/v1"


class CanvaClient:
    """
    Thin async wrapper over the Canva REST endpoints used by the integration.

    Args:
        api_base_url: REST base (defaults to settings.CANVA_API_BASE_URL).
            "/v1" is appended unless already present.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests to stub Canva.
    """

    def __init__(
        self,
        api_base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_root = _api_root(api_base_url or settings.CANVA_API_BASE_URL)
        self.timeout = timeout if timeout is not None else settings.CANVA_HTTP_TIMEOUT_SECONDS
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self.api_root}/{path.lstrip('/')}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _auth_headers(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Canva request %s %s failed: %s", method, url, e)
            raise NetworkError(f"Could not reach Canva: {e}") from e

        if response.is_error:
            logger.warning(
                "Canva request %s %s returned %d", method, url, response.status_code
            )
            raise NetworkError(
                f"Canva returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            raise NetworkError("Canva returned an unreadable response") from e
        if not isinstance(body, dict):
            raise NetworkError("Canva returned an unexpected response")
        return body

    # -------------------------------------------------------------------------
    # OAuth
    # -------------------------------------------------------------------------

    async def request_token(
        self,
        *,
        client_id: str,
        client_secret: str,
        data: dict[str, str],
    ) -> dict:
        """
        POST a form-encoded grant to the token endpoint with HTTP Basic auth.

        Raises:
            OAuthTokenError: If Canva rejects the grant.
            NetworkError: If Canva cannot be reached.
        """
        credentials = base64.b64encode(f"{client_id}:{client_secret}".encode()).decode()
        url = self._url("oauth/token")
        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    data=data,
                    headers={
                        "Authorization": f"Basic {credentials}",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Canva token request failed: %s", e)
            raise NetworkError(f"Could not reach Canva: {e}") from e

        try:
            result = response.json()
        except ValueError:
            result = {}

        if response.status_code != 200:
            error = result.get("error", "unknown_error") if isinstance(result, dict) else "unknown_error"
            description = result.get("error_description") if isinstance(result, dict) else None
            raise OAuthTokenError(error, description, status_code=response.status_code)

        if not isinstance(result, dict) or "access_token" not in result:
            raise OAuthTokenError("invalid_token_response", "No access token in response")

        return result

    # -------------------------------------------------------------------------
    # Brand templates and autofill
    # -------------------------------------------------------------------------

    async def get_brand_template_dataset(self, access_token: str, template_id: str) -> dict:
        """Return the template's dataset definition ({name: {"type": ...}})."""
        response = await self._request(
            "GET",
            self._url(f"brand-templates/{template_id}/dataset"),
            headers=self._auth_headers(access_token),
        )
        return self._json(response).get("dataset") or {}

    async def create_autofill_job(
        self,
        access_token: str,
        *,
        brand_template_id: str,
        data: dict[str, dict],
        title: str | None = None,
    ) -> dict:
        """Submit an autofill job and return its job object."""
        body: dict[str, Any] = {"brand_template_id": brand_template_id, "data": data}
        if title:
            body["title"] = title
        response = await self._request(
            "POST",
            self._url("autofills"),
            headers=self._auth_headers(access_token),
            json=body,
        )
        job = self._json(response).get("job")
        if not isinstance(job, dict) or not job.get("id"):
            raise NetworkError("Canva did not return an autofill job")
        return job

    async def get_autofill_job(self, access_token: str, job_id: str) -> dict:
        response = await self._request(
            "GET",
            self._url(f"autofills/{job_id}"),
            headers=self._auth_headers(access_token),
        )
        job = self._json(response).get("job")
        if not isinstance(job, dict):
            raise NetworkError("Canva returned an autofill job without a body")
        return job

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    async def download_image(self, url: str) -> tuple[bytes, str]:
        """
        Fetch an image from its host.

        Returns:
            Tuple of (content, content_type)
        """
        response = await self._request("GET", url, follow_redirects=True)
        content_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, content_type.split(";")[0].strip()

    async def create_asset_upload(self, access_token: str, *, name: str, content: bytes) -> dict:
        """Start an asset upload job and return its job object."""
        name_base64 = base64.b64encode(name.encode()).decode()
        headers = self._auth_headers(access_token)
        headers["Content-Type"] = "application/octet-stream"
        headers["Asset-Upload-Metadata"] = json.dumps({"name_base64": name_base64})
        response = await self._request(
            "POST",
            self._url("asset-uploads"),
            headers=headers,
            content=content,
        )
        job = self._json(response).get("job")
        if not isinstance(job, dict):
            raise NetworkError("Canva did not return an asset upload job")
        return job

    async def get_asset_upload(self, access_token: str, job_id: str) -> dict:
        response = await self._request(
            "GET",
            self._url(f"asset-uploads/{job_id}"),
            headers=self._auth_headers(access_token),
        )
        job = self._json(response).get("job")
        if not isinstance(job, dict):
            raise NetworkError("Canva returned an asset upload job without a body")
        return job

    # -------------------------------------------------------------------------
    # Designs
    # -------------------------------------------------------------------------

    async def create_design(
        self,
        access_token: str,
        *,
        title: str,
        asset_id: str | None = None,
    ) -> dict:
        """Create a blank presentation design, optionally seeded with an image."""
        body: dict[str, Any] = {
            "title": title,
            "design_type": {"type": "preset", "name": "presentation"},
        }
        if asset_id:
            body["asset_id"] = asset_id
        response = await self._request(
            "POST",
            self._url("designs"),
            headers=self._auth_headers(access_token),
            json=body,
        )
        design = self._json(response).get("design")
        if not isinstance(design, dict) or not design.get("id"):
            raise NetworkError("Canva did not return a design")
        return design

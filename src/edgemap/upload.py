"""Client for the worker script upload API."""

import json
import logging
from typing import Any

import httpx

from edgemap.exceptions import UploadError
from edgemap.models import AuthConfig
from edgemap.script import WorkerScript
from edgemap.transport import Fetcher
from edgemap.utils import log_with_correlation

LOGGER = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cloudflare.com/client/v4/"
SCRIPT_PART = "worker.js"


class ScriptUploader:
    """
    Installs worker scripts for one account's credentials.

    One uploader is built per worker configuration; nothing is shared
    between workers.

    Usage:
        async with Fetcher(proxy=worker.proxy) as fetcher:
            uploader = ScriptUploader(worker.auth, fetcher)
            await uploader.upload(worker.account_id, script)
    """

    def __init__(
        self,
        auth: AuthConfig,
        fetcher: Fetcher,
        api_url: str = DEFAULT_API_URL,
        correlation_id: str | None = None,
    ) -> None:
        """
        Initialise uploader.

        Args:
            auth: Bearer token or email + key credentials.
            fetcher: Transport used for API requests.
            api_url: Root of the upload API.
            correlation_id: Optional correlation ID for log grouping.
        """
        self._headers = auth.headers()
        self._fetcher = fetcher
        self._api_url = api_url if api_url.endswith("/") else f"{api_url}/"
        self._correlation_id = correlation_id

    def script_url(self, account_id: str, name: str) -> str:
        return f"{self._api_url}accounts/{account_id}/workers/scripts/{name}"

    @staticmethod
    def metadata(script: WorkerScript) -> dict[str, Any]:
        """Upload metadata declaring the module entry point and bindings."""
        data: dict[str, Any] = {"main_module": SCRIPT_PART}
        if script.bindings:
            data["bindings"] = script.bindings
        return data

    async def upload(self, account_id: str, script: WorkerScript) -> None:
        """
        Upload a script, replacing any previous version with the same name.

        Args:
            account_id: Account owning the script.
            script: Script with optional bindings.

        Raises:
            UploadError: If the API answers non-2xx or reports failure.
        """
        files = {
            SCRIPT_PART: (SCRIPT_PART, script.source.encode("utf-8"), "application/javascript+module"),
            "metadata": (None, json.dumps(self.metadata(script)).encode("utf-8"), "application/json"),
        }
        url = self.script_url(account_id, script.name)
        log_with_correlation(
            LOGGER,
            logging.INFO,
            f"Uploading script {script.name} ({script.size} bytes, {len(script.bindings)} bindings)",
            correlation_id=self._correlation_id,
            script=script.name,
        )
        response = await self._fetcher.request("PUT", url, headers=self._headers, files=files)
        self._check(response, script.name)

    def _check(self, response: httpx.Response, name: str) -> None:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        errors: list[dict[str, Any]] = []
        success = response.is_success
        if isinstance(payload, dict):
            errors = [e for e in payload.get("errors") or [] if isinstance(e, dict)]
            success = success and payload.get("success", True) is not False

        if not success:
            detail = "; ".join(f"{e.get('code', '?')}: {e.get('message', '')}" for e in errors) or response.text[:200]
            raise UploadError(
                f"Could not update worker script {name}: {response.status_code}, {detail}",
                script=name,
                status_code=response.status_code,
                errors=errors,
                correlation_id=self._correlation_id,
            )

import os
import logging
import secrets
import string
import time
from urllib.parse import urljoin, quote
from typing import Any, Mapping, Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "payment-screenshots"
BASE36_ALPHABET = string.digits + string.ascii_lowercase


def generate_object_name(filename: str, now_ms: Optional[int] = None) -> str:
    """Return a collision-resistant object name keeping ``filename``'s extension.

    The name is ``<epoch milliseconds>-<random base36>.<ext>``.
    """
    ext = filename.rsplit(".", 1)[-1] if "." in filename else "bin"
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(11))
    return f"{stamp}-{suffix}.{ext.lower()}"


class StorageClient:
    """Uploads payment screenshots to the hosted object storage."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        bucket: str = DEFAULT_BUCKET,
        timeout: int = 45,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        url = base_url or os.getenv("STORAGE_BASE_URL")
        if not url:
            raise ValueError("Environment variable 'STORAGE_BASE_URL' is not set")
        key = api_key or os.getenv("STORAGE_API_KEY")
        if not key:
            raise ValueError("Environment variable 'STORAGE_API_KEY' is not set")

        self.base_url = url.rstrip("/")
        self.api_key = key
        self.bucket = bucket
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
        }

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        data: Optional[bytes] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        try:
            r = self.session.request(
                method=method.upper(),
                url=url,
                headers=headers or self.auth_headers,
                data=data,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            logger.critical(f"Storage request {method.upper()} {path} failed: {e}")
            raise RuntimeError(f"Storage request failed: {e}") from e
        return r.json() if r.content else None

    # -------- API callers --------
    def public_url(self, object_name: str) -> str:
        return (
            f"{self.base_url}/storage/v1/object/public/"
            f"{self.bucket}/{quote(object_name)}"
        )

    def upload(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload ``content`` under a generated name and return its public URL.

        Raises
        ------
        ValueError
            If ``content`` is empty.
        RuntimeError
            If the storage service rejects the upload or is unreachable.
        """
        if not content:
            raise ValueError("Cannot upload an empty file")

        object_name = generate_object_name(filename)
        self._request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{quote(object_name)}",
            headers={**self.auth_headers, "Content-Type": content_type},
            data=content,
        )
        # Do not log the API key or file contents
        logger.debug(f"Uploaded {len(content)} bytes as {object_name}")
        return self.public_url(object_name)

"""HTTP client for the remote signature artifact storage service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from planit.config import settings
from planit.errors import UploadFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureArtifact:
    """Decoded signature image ready for upload."""

    data: bytes
    content_type: str
    filename: str


class SignatureStorage(Protocol):
    """Storage provider interface."""

    def upload_signature(
        self,
        contract_id: str,
        field_id: str,
        artifact: SignatureArtifact,
        token: str,
        metadata: dict[str, str] | None = None,
    ) -> str: ...


class SignatureStorageClient:
    """Uploads signature images and returns their durable download URL.

    ``POST {base_url}/contracts/{contract_id}/fields/{field_id}/signature``
    with a multipart body. A 2xx answer carries ``{"downloadURL": ...}``,
    anything else ``{"message": ...}``. Failed uploads are not retried.
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _signature_path(self, contract_id: str, field_id: str) -> str:
        return (
            f"/contracts/{quote(str(contract_id), safe='')}"
            f"/fields/{quote(str(field_id), safe='')}/signature"
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = payload.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return f"Upload failed with status {response.status_code}"

    def upload_signature(
        self,
        contract_id: str,
        field_id: str,
        artifact: SignatureArtifact,
        token: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Upload a signature image.

        Returns:
            The download URL reported by the storage service

        Raises:
            UploadFailed: On a non-2xx answer, a transport error or a
                response without a download URL
        """
        url = f"{self.base_url}{self._signature_path(contract_id, field_id)}"
        files = {"signature": (artifact.filename, artifact.data, artifact.content_type)}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    url,
                    files=files,
                    data=metadata or {},
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.RequestError as exc:
            logger.error("Signature storage request error: %s", exc)
            raise UploadFailed(f"Could not reach signature storage: {exc}") from exc

        if not 200 <= response.status_code < 300:
            message = self._error_message(response)
            logger.error(
                "Signature upload for contract %s field %s failed: %s - %s",
                contract_id,
                field_id,
                response.status_code,
                message,
            )
            raise UploadFailed(message)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UploadFailed("Signature storage returned an invalid response") from exc
        download_url = payload.get("downloadURL") if isinstance(payload, dict) else None
        if not download_url:
            raise UploadFailed("Signature storage response did not include a download URL")

        logger.info(
            "Signature for contract %s field %s stored (%d bytes)",
            contract_id,
            field_id,
            len(artifact.data),
        )
        return str(download_url)


def get_signature_storage() -> SignatureStorageClient:
    """Get the configured signature storage client."""
    return SignatureStorageClient(
        settings.signature_storage_base_url,
        timeout=settings.signature_storage_timeout,
    )

from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import httpx

from upload_server import config
from upload_server.logger_config import setup_logger, structured_log
from upload_server.storage.base import BlobReader, Capability, StorageBackend, WriteError

logger = setup_logger()


class WebhookError(WriteError):
    """The webhook sink refused or never received the upload."""


class WebhookStore(StorageBackend):
    """Write-only store that posts each upload to a webhook as a file attachment.

    The sink is an append-only archive: there is no way to look a file up
    again, so ``exists`` and ``read`` are not supported.
    """

    name = "webhook"
    capabilities = frozenset({Capability.WRITE})

    def __init__(
        self,
        webhook_url: str,
        timeout: float = config.WEBHOOK_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not webhook_url:
            raise ValueError("no webhook provided")
        self.webhook_url = webhook_url
        # Certificate checks are off: sinks are internal endpoints
        self._client = httpx.AsyncClient(verify=False, timeout=timeout, transport=transport)

    async def close(self):
        await self._client.aclose()

    async def exists(self, filename: str) -> bool:
        raise self._unsupported(Capability.EXISTS)

    async def read(self, filename: str) -> BlobReader:
        raise self._unsupported(Capability.READ)

    @staticmethod
    def attachment_name(now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        return f"backup_{now.isoformat(timespec='seconds')}"

    async def write(self, filename: str, stream: AsyncIterator[bytes]) -> int:
        # The whole form is assembled before anything is sent
        content = b"".join([chunk async for chunk in stream])
        files = {"file0": (self.attachment_name(), content, "application/octet-stream")}
        data = {"payload_json": "{}"}

        try:
            response = await self._client.post(self.webhook_url, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(structured_log("Webhook request failed", filename=filename, cause=e))
            raise WebhookError(f"error posting to webhook: {e}", bytes_written=0) from e

        if not response.is_success:
            raise WebhookError(
                f"non-2xx response status code received: {response.status_code}",
                bytes_written=0,
            )

        logger.info(structured_log(
            "Forwarded upload to webhook",
            filename=filename,
            size=len(content),
            status=response.status_code,
        ))
        return len(content)

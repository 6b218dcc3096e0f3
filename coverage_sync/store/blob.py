"""Remote blob storage for the run checkpoint (Supabase Storage)."""
import asyncio
import logging
from typing import Optional, Protocol

from supabase import create_client, Client
from tenacity import retry, stop_after_attempt, wait_exponential

from coverage_sync.config import config

logger = logging.getLogger(__name__)


class BlobStoreError(RuntimeError):
    pass


class BlobStore(Protocol):
    async def download(self, name: str) -> Optional[bytes]: ...

    async def upload(self, name: str, data: bytes) -> None: ...


class SupabaseBlobStore:
    """Stores small objects in a Supabase Storage bucket."""

    def __init__(self, bucket: str = config.SUPABASE_BUCKET):
        if not config.has_supabase():
            raise ValueError("Supabase configuration missing")
        self.client: Client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE)
        self.bucket = bucket

    async def download(self, name: str) -> Optional[bytes]:
        """Object bytes, or None when the object does not exist yet."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                None, lambda: self.client.storage.from_(self.bucket).download(name)
            )
        except Exception as e:
            logger.info(f"{name} not available in bucket {self.bucket}: {e}")
            return None

    async def upload(self, name: str, data: bytes) -> None:
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self._upload_sync, name, data)
        except Exception as e:
            raise BlobStoreError(f"Upload of {name} to bucket {self.bucket} failed: {e}") from e
        logger.info(f"{name} uploaded to bucket {self.bucket}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upload_sync(self, name: str, data: bytes) -> None:
        self.client.storage.from_(self.bucket).upload(
            name,
            data,
            file_options={"content-type": "application/json", "upsert": "true"},
        )

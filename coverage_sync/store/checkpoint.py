"""Checkpoint store: the ``lastRun`` date bounding the next collection window."""
import logging
from datetime import date
from pathlib import Path
from typing import Optional

import orjson

from coverage_sync.config import METADATA_PATH, config
from coverage_sync.store.blob import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)

BLOB_NAME = "metadata.json"


class CheckpointStore:
    """Local ``metadata.json`` mirrored to an optional remote blob store.

    The remote copy wins at load time; a missing or corrupt local file falls
    back to the epoch date and is recreated.
    """

    def __init__(
        self,
        path: Path = METADATA_PATH,
        blob_store: Optional[BlobStore] = None,
        epoch: Optional[date] = None,
    ):
        self.path = Path(path)
        self.blob_store = blob_store
        self.epoch = epoch or date.fromisoformat(config.EPOCH_DATE)
        self.metadata: dict = {}

    async def load(self) -> date:
        if self.blob_store is not None:
            data = await self.blob_store.download(BLOB_NAME)
            if data:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_bytes(data)
                logger.info(f"{BLOB_NAME} downloaded from remote store")
            else:
                logger.info(f"{BLOB_NAME} not in remote store, using local copy")

        self.metadata = self._read_local()
        last_run = date.fromisoformat(self.metadata["lastRun"])
        logger.info(f"Checkpoint loaded: lastRun={last_run.isoformat()}")
        return last_run

    def _read_local(self) -> dict:
        if not self.path.exists():
            return self._reset("missing")
        try:
            metadata = orjson.loads(self.path.read_bytes())
            date.fromisoformat(metadata["lastRun"])
        except (ValueError, KeyError, TypeError) as e:
            return self._reset(f"corrupt: {e}")
        return metadata

    def _reset(self, reason: str) -> dict:
        logger.warning(f"{self.path} {reason}, defaulting lastRun to {self.epoch.isoformat()}")
        metadata = {"lastRun": self.epoch.isoformat()}
        self._write_local(metadata)
        return metadata

    def _write_local(self, metadata: dict) -> bytes:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = orjson.dumps(metadata, option=orjson.OPT_INDENT_2)
        self.path.write_bytes(data)
        return data

    async def advance(self, new_date: date) -> None:
        """Persist the new checkpoint locally, then mirror it remotely."""
        self.metadata = {**self.metadata, "lastRun": new_date.isoformat()}
        data = self._write_local(self.metadata)
        logger.info(f"Checkpoint advanced: lastRun={new_date.isoformat()}")
        if self.blob_store is not None:
            try:
                await self.blob_store.upload(BLOB_NAME, data)
            except BlobStoreError as e:
                logger.error(f"Checkpoint saved locally but remote upload failed: {e}")

"""Tabular stores holding the tracked SKU rows."""
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Protocol
from urllib.parse import quote

import httpx
import orjson
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from coverage_sync.config import DEV_DIR, config

logger = logging.getLogger(__name__)

Rows = list[list[Any]]


class TabularStoreError(RuntimeError):
    """Reading or writing the tracked rows failed. Fatal for the run."""


class TabularStore(Protocol):
    async def get_range(self, sheet_id: str, cell_range: str) -> Rows: ...

    async def update_range(self, sheet_id: str, cell_range: str, rows: Rows) -> None: ...


class GoogleSheetsStore:
    """Google Sheets v4 ``values`` endpoints over httpx.

    Google access tokens expire after about an hour. Long-running processes
    should pass ``token_provider``, which is called before every request.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        token_provider: Optional[Callable[[], str]] = None,
        base_url: str = config.SHEETS_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = config.TIMEOUT,
    ):
        token = access_token or config.GOOGLE_ACCESS_TOKEN
        if token_provider is None:
            if not token:
                raise ValueError("GOOGLE_ACCESS_TOKEN is required for the Sheets store")
            token_provider = lambda: token
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _values_url(self, sheet_id: str, cell_range: str) -> str:
        return f"{self.base_url}/{sheet_id}/values/{quote(cell_range, safe='')}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.token_provider()}"}
        response = await self.client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        return response

    async def get_range(self, sheet_id: str, cell_range: str) -> Rows:
        logger.info(f"Reading sheet {sheet_id} range {cell_range}")
        try:
            response = await self._send("GET", self._values_url(sheet_id, cell_range))
        except httpx.HTTPError as e:
            raise TabularStoreError(f"Reading {cell_range} failed: {e}") from e
        return response.json().get("values", [])

    async def update_range(self, sheet_id: str, cell_range: str, rows: Rows) -> None:
        logger.info(f"Writing {len(rows)} rows to sheet {sheet_id} range {cell_range}")
        try:
            await self._send(
                "PUT",
                self._values_url(sheet_id, cell_range),
                params={"valueInputOption": "RAW"},
                json={"range": cell_range, "majorDimension": "ROWS", "values": rows},
            )
        except httpx.HTTPError as e:
            raise TabularStoreError(f"Writing {cell_range} failed: {e}") from e


class LocalSheetStore:
    """JSON file per sheet under ``data/dev`` for DEV runs.

    Reads fall back to the seed file (e.g. a copy exported from the real
    sheet); writes go to ``<sheet_id>.out.json`` for inspection.
    """

    def __init__(self, directory: Path = DEV_DIR):
        self.directory = Path(directory)

    def _path(self, sheet_id: str, suffix: str) -> Path:
        return self.directory / f"{sheet_id}{suffix}"

    async def get_range(self, sheet_id: str, cell_range: str) -> Rows:
        path = self._path(sheet_id, ".json")
        if not path.exists():
            raise TabularStoreError(f"No local sheet at {path}")
        try:
            data = orjson.loads(path.read_bytes())
        except ValueError as e:
            raise TabularStoreError(f"Local sheet {path} is not valid JSON: {e}") from e
        logger.info(f"Read {len(data)} rows from {path}")
        return data

    async def update_range(self, sheet_id: str, cell_range: str, rows: Rows) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(sheet_id, ".out.json")
        path.write_bytes(orjson.dumps(rows, option=orjson.OPT_INDENT_2))
        logger.info(f"Saved {len(rows)} rows to {path}")

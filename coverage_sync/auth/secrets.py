"""Secret stores and API credential loading."""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

import orjson
from supabase import create_client, Client

from coverage_sync.config import config
from coverage_sync.redact import redact_json

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.bling.com.br/Api/v3"


class CredentialError(RuntimeError):
    """The API credentials could not be loaded. Fatal at startup."""


@dataclass(frozen=True)
class ApiCredentials:
    access_token: str
    api_base_url: str = DEFAULT_API_BASE_URL


class SecretStore(Protocol):
    async def get(self, secret_id: str) -> dict[str, Any]: ...

    async def put(self, secret_id: str, payload: dict[str, Any]) -> None: ...


class EnvSecretStore:
    """Serves a single secret built from environment configuration."""

    def __init__(self, access_token: Optional[str] = None, api_base_url: Optional[str] = None):
        self._payload: dict[str, Any] = {
            "access_token": access_token if access_token is not None else config.ACCESS_TOKEN,
            "api_base_url": api_base_url or config.API_BASE_URL,
        }

    async def get(self, secret_id: str) -> dict[str, Any]:
        return dict(self._payload)

    async def put(self, secret_id: str, payload: dict[str, Any]) -> None:
        self._payload = dict(payload)


class FileSecretStore:
    """JSON file holding ``{secret_id: payload}``."""

    def __init__(self, path: Path | str = config.SECRETS_FILE):
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        return orjson.loads(self.path.read_bytes())

    async def get(self, secret_id: str) -> dict[str, Any]:
        secrets = self._read_all()
        if secret_id not in secrets:
            raise KeyError(f"Secret {secret_id} not found in {self.path}")
        return secrets[secret_id]

    async def put(self, secret_id: str, payload: dict[str, Any]) -> None:
        secrets = self._read_all()
        secrets[secret_id] = payload
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(orjson.dumps(secrets, option=orjson.OPT_INDENT_2))


class SupabaseSecretStore:
    """One row per secret in a Supabase table: ``(id text primary key, payload jsonb)``."""

    def __init__(self, table: str = config.SUPABASE_SECRETS_TABLE):
        if not config.has_supabase():
            raise ValueError("Supabase configuration missing")
        self.client: Client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE)
        self.table = table

    async def get(self, secret_id: str) -> dict[str, Any]:
        loop = asyncio.get_event_loop()
        response = await loop.run_in_executor(
            None,
            lambda: self.client.table(self.table).select("payload").eq("id", secret_id).limit(1).execute(),
        )
        if not response.data:
            raise KeyError(f"Secret {secret_id} not found in table {self.table}")
        return response.data[0]["payload"]

    async def put(self, secret_id: str, payload: dict[str, Any]) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(
            None,
            lambda: self.client.table(self.table).upsert({"id": secret_id, "payload": payload}, on_conflict="id").execute(),
        )


def build_secret_store(backend: str = config.SECRET_BACKEND) -> SecretStore:
    if backend == "env":
        return EnvSecretStore()
    if backend == "file":
        return FileSecretStore()
    if backend == "supabase":
        return SupabaseSecretStore()
    raise ValueError(f"Unknown secret backend: {backend}")


async def load_credentials(store: SecretStore, secret_id: str = config.SECRET_ID) -> ApiCredentials:
    """Read ``access_token``/``api_base_url`` from the secret store."""
    logger.info(f"Loading API credentials from secret {secret_id}")
    try:
        payload = await store.get(secret_id)
    except Exception as e:
        raise CredentialError(f"Could not read secret {secret_id}: {e}") from e

    if not isinstance(payload, dict):
        raise CredentialError(f"Secret {secret_id} is not a JSON object")
    logger.debug(f"Secret payload: {redact_json(payload)}")

    token = payload.get("access_token")
    if not isinstance(token, str) or not token.strip():
        raise CredentialError(f"Secret {secret_id} has no access_token")
    base_url = payload.get("api_base_url") or DEFAULT_API_BASE_URL
    return ApiCredentials(access_token=token.strip(), api_base_url=str(base_url).strip().rstrip("/"))

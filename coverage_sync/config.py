"""Configuration management from environment variables."""
import math
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
METADATA_PATH = DATA_DIR / "metadata.json"
PURCHASE_CACHE_PATH = DATA_DIR / "compras_cache.json"
SALE_CACHE_PATH = DATA_DIR / "vendas_cache.json"
CACHE_DB = DATA_DIR / "cache.db"
METRICS_FILE = DATA_DIR / "metrics.jsonl"
DEV_DIR = DATA_DIR / "dev"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)


class Config:
    """Application configuration."""

    # Bling API
    API_BASE_URL: str = os.getenv("API_BASE_URL", "https://api.bling.com.br/Api/v3")
    ACCESS_TOKEN: str | None = os.getenv("ACCESS_TOKEN")
    DEPOSIT_ID: str = os.getenv("DEPOSIT_ID", "14088231094")
    ACCEPTED_CATEGORY_ID: int = int(os.getenv("ACCEPTED_CATEGORY_ID", "12269489770"))
    PURCHASE_STATUS: str = os.getenv("PURCHASE_STATUS", "1")
    SALE_STATUS: str = os.getenv("SALE_STATUS", "9")
    PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "100"))
    TIMEOUT: int = int(os.getenv("TIMEOUT", "30"))

    # Secrets
    SECRET_BACKEND: str = os.getenv("SECRET_BACKEND", "env")
    SECRET_ID: str = os.getenv(
        "SECRET_ID",
        "projects/analise-de-cobertura/secrets/Credenciais-API-Bling/versions/latest",
    )
    SECRETS_FILE: str = os.getenv("SECRETS_FILE", str(DATA_DIR / "secrets.json"))

    # Rate limiting / retries
    RATE_PER_SECOND: float = float(os.getenv("RATE_PER_SECOND", "3"))
    DAILY_LIMIT: int = int(os.getenv("DAILY_LIMIT", "120000"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "2"))
    RETRY_BACKOFF: float = float(os.getenv("RETRY_BACKOFF", "2.0"))

    # Checkpoint / cache
    EPOCH_DATE: str = os.getenv("EPOCH_DATE", "2023-01-01")
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "json")

    # Google Sheets
    SHEET_ID: str = os.getenv("SHEET_ID", "13yML4Kkt3rH7SDrIii9YD5cNQRPGrFPB_HBe3IuNPPA")
    SHEET_RANGE: str = os.getenv("SHEET_RANGE", "Dados Bling!A1:G")
    SHEETS_API_URL: str = os.getenv("SHEETS_API_URL", "https://sheets.googleapis.com/v4/spreadsheets")
    GOOGLE_ACCESS_TOKEN: str | None = os.getenv("GOOGLE_ACCESS_TOKEN")

    # Supabase (checkpoint blob, optional secret table)
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE: str | None = os.getenv("SUPABASE_SERVICE_ROLE")
    SUPABASE_BUCKET: str = os.getenv("SUPABASE_BUCKET", "analise-cobertura-metadata")
    SUPABASE_SECRETS_TABLE: str = os.getenv("SUPABASE_SECRETS_TABLE", "api_secrets")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Security
    API_KEY: str | None = os.getenv("API_KEY")

    def min_interval_ms(self) -> int:
        """Minimum spacing between requests, in milliseconds."""
        if self.RATE_PER_SECOND <= 0:
            return 0
        return math.ceil(1000 / self.RATE_PER_SECOND)

    def has_supabase(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE)

    def validate(self, require_sheets: bool = True) -> None:
        """Validate required configuration."""
        errors = []
        if self.SECRET_BACKEND not in ("env", "file", "supabase"):
            errors.append(f"SECRET_BACKEND must be env, file or supabase (got {self.SECRET_BACKEND!r})")
        if self.SECRET_BACKEND == "env" and not self.ACCESS_TOKEN:
            errors.append("ACCESS_TOKEN is required when SECRET_BACKEND=env")
        if self.SECRET_BACKEND == "supabase" and not self.has_supabase():
            errors.append("SUPABASE_URL and SUPABASE_SERVICE_ROLE are required when SECRET_BACKEND=supabase")
        if self.CACHE_BACKEND not in ("json", "sqlite"):
            errors.append(f"CACHE_BACKEND must be json or sqlite (got {self.CACHE_BACKEND!r})")
        if self.PAGE_SIZE <= 0:
            errors.append("PAGE_SIZE must be positive")
        if self.MAX_RETRIES < 0:
            errors.append("MAX_RETRIES must be >= 0")
        if require_sheets:
            if not self.SHEET_ID:
                errors.append("SHEET_ID is required")
            if not self.GOOGLE_ACCESS_TOKEN:
                errors.append("GOOGLE_ACCESS_TOKEN is required")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()

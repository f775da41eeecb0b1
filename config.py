import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        secret_key: str,
        token_ttl_hours: int,
        otp_ttl_minutes: int,
        admin_code: str,
        cors_origins: list[str],
        pool_size: int,
        max_overflow: int,
        pool_recycle_secs: int,
        db_connect_attempts: int,
        db_connect_backoff_secs: float,
        shutdown_timeout_secs: int,
        host: str,
        port: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.secret_key = secret_key
        self.token_ttl_hours = token_ttl_hours
        self.otp_ttl_minutes = otp_ttl_minutes
        self.admin_code = admin_code
        self.cors_origins = cors_origins
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_recycle_secs = pool_recycle_secs
        self.db_connect_attempts = db_connect_attempts
        self.db_connect_backoff_secs = db_connect_backoff_secs
        self.shutdown_timeout_secs = shutdown_timeout_secs
        self.host = host
        self.port = port
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("MINING_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "mining.db"
    database_url = os.getenv("MINING_DATABASE_URL", f"sqlite:///{default_db}")
    secret_key = os.getenv(
        "MINING_SECRET_KEY",
        "5c0d3f1e9a7b4c2d8e6f0a1b3c5d7e9f2a4b6c8d0e1f3a5b7c9d2e4f6a8b0c1d",
    )
    cors_origins = _split_csv(
        os.getenv(
            "MINING_CORS_ORIGINS",
            "http://localhost:3000,http://localhost:3001,"
            "http://localhost:3002,http://localhost:8086",
        )
    )
    return Settings(
        database_url=database_url,
        secret_key=secret_key,
        token_ttl_hours=int(os.getenv("MINING_TOKEN_TTL_HOURS", "24")),
        otp_ttl_minutes=int(os.getenv("MINING_OTP_TTL_MINUTES", "10")),
        admin_code=os.getenv("MINING_ADMIN_CODE", "MINING2025ADMIN"),
        cors_origins=cors_origins,
        pool_size=int(os.getenv("MINING_DB_POOL_SIZE", "10")),
        max_overflow=int(os.getenv("MINING_DB_MAX_OVERFLOW", "90")),
        pool_recycle_secs=int(os.getenv("MINING_DB_POOL_RECYCLE_SECS", "3600")),
        db_connect_attempts=int(os.getenv("MINING_DB_CONNECT_ATTEMPTS", "10")),
        db_connect_backoff_secs=float(os.getenv("MINING_DB_CONNECT_BACKOFF_SECS", "1")),
        shutdown_timeout_secs=int(os.getenv("MINING_SHUTDOWN_TIMEOUT_SECS", "30")),
        host=os.getenv("MINING_HOST", "0.0.0.0"),
        port=int(os.getenv("MINING_PORT", "9006")),
        log_level=os.getenv("MINING_LOG_LEVEL", "INFO").upper(),
    )

"""Config package"""
import os
from dataclasses import dataclass
from dotenv import load_dotenv

from ..constants import DEFAULT_BUCKET, DEFAULT_START_SLOT
from ..exceptions import ConfigurationException

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        raise ConfigurationException(f"{name} must be an integer", value=raw)


# ============================================
# ENDPOINTS & STORAGE
# ============================================
RPC_URL = os.getenv("RPC_URL") or os.getenv("SOLANA_NODE")
DB_PATH = os.getenv("DB_PATH", "jup_trades.db")

# ============================================
# LOGGING
# ============================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ============================================
# PROCESSING
# ============================================
BUCKET = _env_int("BUCKET", DEFAULT_BUCKET)
START_SLOT = _env_int("START_SLOT", DEFAULT_START_SLOT)
BATCH_SIZE = _env_int("BATCH_SIZE", 50)             # Slots per batch
RPC_CONCURRENCY = _env_int("RPC_CONCURRENCY", 20)   # Parallel getBlock calls
RPC_TIMEOUT_SECONDS = _env_int("RPC_TIMEOUT_SECONDS", 30)


@dataclass
class Settings:
    """Runtime settings, env first, CLI overrides on top"""
    RPC_URL: str = None
    DB_PATH: str = "jup_trades.db"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    BUCKET: int = DEFAULT_BUCKET
    START_SLOT: int = DEFAULT_START_SLOT
    BATCH_SIZE: int = 50
    RPC_CONCURRENCY: int = 20
    RPC_TIMEOUT_SECONDS: int = 30

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            RPC_URL=RPC_URL,
            DB_PATH=DB_PATH,
            LOG_LEVEL=LOG_LEVEL,
            LOG_DIR=LOG_DIR,
            BUCKET=BUCKET,
            START_SLOT=START_SLOT,
            BATCH_SIZE=BATCH_SIZE,
            RPC_CONCURRENCY=RPC_CONCURRENCY,
            RPC_TIMEOUT_SECONDS=RPC_TIMEOUT_SECONDS,
        )

    def validate(self) -> None:
        if self.BATCH_SIZE <= 0:
            raise ConfigurationException("BATCH_SIZE must be positive", value=self.BATCH_SIZE)
        if self.RPC_CONCURRENCY <= 0:
            raise ConfigurationException("RPC_CONCURRENCY must be positive", value=self.RPC_CONCURRENCY)
        if self.LOG_LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationException("Unknown LOG_LEVEL", value=self.LOG_LEVEL)

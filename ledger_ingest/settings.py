"""Configuration for the ledger ingestion consumer."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# Ledger database
POSTGRES_HOST = os.getenv("POSTGRES_HOST")
POSTGRES_DB = os.getenv("POSTGRES_DB")
POSTGRES_USER = os.getenv("POSTGRES_USER")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")
POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))

# Queue database (separate credentials)
QUEUE_POSTGRES_HOST = os.getenv("QUEUE_POSTGRES_HOST")
QUEUE_POSTGRES_DATABASE = os.getenv("QUEUE_POSTGRES_DATABASE")
QUEUE_POSTGRES_USER = os.getenv("QUEUE_POSTGRES_USER")
QUEUE_POSTGRES_PASSWORD = os.getenv("QUEUE_POSTGRES_PASSWORD")
QUEUE_POSTGRES_PORT = int(os.getenv("QUEUE_POSTGRES_PORT", "5432"))
QUEUE_NAME = os.getenv("QUEUE_NAME", "events")

# Consumer settings
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "10"))
VISIBILITY_TIMEOUT_SECONDS = int(os.getenv("VISIBILITY_TIMEOUT_SECONDS", "300"))
POLL_INTERVAL_MS = int(os.getenv("POLL_INTERVAL_MS", "1000"))

# Storage retry and pooling
RETRY_MAX = int(os.getenv("RETRY_MAX", "3"))
RETRY_DELAY_MS = int(os.getenv("RETRY_DELAY_MS", "1000"))
POOL_MAX_CONNECTIONS = int(os.getenv("POOL_MAX_CONNECTIONS", "20"))

# Ledger identifiers
META_WORKSPACE_ID = int(os.getenv("META_WORKSPACE_ID", "1"))
EVENT_DEFINITION_ID = int(os.getenv("EVENT_DEFINITION_ID", "67"))
NEW_TENANT_DEFINITION_ID = int(os.getenv("NEW_TENANT_DEFINITION_ID", "68"))


def ledger_connection_params() -> dict:
    """Connection kwargs for the ledger store."""
    return {
        "host": POSTGRES_HOST,
        "dbname": POSTGRES_DB,
        "user": POSTGRES_USER,
        "password": POSTGRES_PASSWORD,
        "port": POSTGRES_PORT,
    }


def queue_connection_params() -> dict:
    """Connection kwargs for the queue store."""
    return {
        "host": QUEUE_POSTGRES_HOST,
        "dbname": QUEUE_POSTGRES_DATABASE,
        "user": QUEUE_POSTGRES_USER,
        "password": QUEUE_POSTGRES_PASSWORD,
        "port": QUEUE_POSTGRES_PORT,
    }


def validate_config():
    """Validate required configuration."""
    errors = []

    required = {
        "POSTGRES_HOST": POSTGRES_HOST,
        "POSTGRES_DB": POSTGRES_DB,
        "POSTGRES_USER": POSTGRES_USER,
        "POSTGRES_PASSWORD": POSTGRES_PASSWORD,
        "QUEUE_POSTGRES_HOST": QUEUE_POSTGRES_HOST,
        "QUEUE_POSTGRES_DATABASE": QUEUE_POSTGRES_DATABASE,
        "QUEUE_POSTGRES_USER": QUEUE_POSTGRES_USER,
        "QUEUE_POSTGRES_PASSWORD": QUEUE_POSTGRES_PASSWORD,
    }
    for name, value in required.items():
        if not value:
            errors.append(f"{name} is required")

    if BATCH_SIZE < 1:
        errors.append(f"BATCH_SIZE must be positive: {BATCH_SIZE}")
    if VISIBILITY_TIMEOUT_SECONDS < 1:
        errors.append(f"VISIBILITY_TIMEOUT_SECONDS must be positive: {VISIBILITY_TIMEOUT_SECONDS}")
    if RETRY_MAX < 1:
        errors.append(f"RETRY_MAX must be at least 1: {RETRY_MAX}")
    if POOL_MAX_CONNECTIONS < 1:
        errors.append(f"POOL_MAX_CONNECTIONS must be positive: {POOL_MAX_CONNECTIONS}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))

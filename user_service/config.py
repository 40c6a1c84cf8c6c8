"""Configuración del servicio: variables de entorno cargadas con python-dotenv."""

import os
import logging
from dotenv import load_dotenv

# Carga variables de entorno desde el archivo .env
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# --- Document store ---
MONGO_URI = os.getenv("MONGO_URI")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "CoinDB")
MONGO_USERS_COLLECTION = os.getenv("MONGO_USERS_COLLECTION", "Users")

# Deadline for every single store operation (and for server selection).
STORE_TIMEOUT_MS = int(os.getenv("STORE_TIMEOUT_MS", 10_000))

# When enabled the ledger adjusts balances with $inc instead of read-then-overwrite.
ATOMIC_BALANCE_UPDATES = _env_bool("ATOMIC_BALANCE_UPDATES", False)

# --- Security ---
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 8))

# --- Runtime ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SERVICE_HOST = os.getenv("SERVICE_HOST", "0.0.0.0")
SERVICE_PORT = int(os.getenv("SERVICE_PORT", 8080))

if not MONGO_URI:
    logger.error("MONGO_URI no está definida en las variables de entorno. El servicio no podrá conectarse a la base de datos.")

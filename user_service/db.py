"""Conexión a MongoDB usando pymongo y dependencia de FastAPI para la colección de usuarios."""

import logging
from typing import Optional

from fastapi import Request
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from user_service import config
from user_service.exceptions import ServiceUnavailableError, StoreError

logger = logging.getLogger(__name__)


def create_client(uri: Optional[str] = None) -> MongoClient:
    """
    Crea el cliente de MongoDB de larga vida compartido por todas las peticiones.

    Cada operación queda acotada por STORE_TIMEOUT_MS (timeoutMS) para que una base
    de datos bloqueada no deje colgada una petición indefinidamente.
    """
    uri = uri or config.MONGO_URI
    if not uri:
        raise StoreError("No connection string configured (MONGO_URI).")

    client = MongoClient(
        uri,
        serverSelectionTimeoutMS=config.STORE_TIMEOUT_MS,
        timeoutMS=config.STORE_TIMEOUT_MS,
    )
    logger.info(f"Cliente MongoDB creado para la base de datos '{config.MONGO_DB_NAME}'.")
    return client


def get_users_collection_from_client(client: MongoClient) -> Collection:
    return client[config.MONGO_DB_NAME][config.MONGO_USERS_COLLECTION]


def ping(client: MongoClient) -> bool:
    """Comprueba que el servidor responde. Usado al arrancar el servicio."""
    try:
        client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.error(f"Error al conectar con MongoDB: {e}", exc_info=True)
        return False


# --- Función de Dependencia para FastAPI ---
def get_users(request: Request) -> Collection:
    """
    Devuelve la colección de usuarios creada en el lifespan de la aplicación.
    Los tests sustituyen esta dependencia con una colección en memoria.
    """
    users = getattr(request.app.state, "users", None)
    if users is None:
        logger.error("La colección de usuarios no está inicializada.")
        raise ServiceUnavailableError()
    return users

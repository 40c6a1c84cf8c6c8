"""Funciones de utilidad: hash de contraseñas con bcrypt y marcas de tiempo."""

import logging
from datetime import datetime, timezone

from passlib.context import CryptContext

from user_service import config
from user_service.exceptions import HashError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of the secret.
MAX_PASSWORD_BYTES = 72

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=config.BCRYPT_ROUNDS,
)


def get_password_hash(password: str) -> str:
    """
    Genera el hash de una contraseña plana usando bcrypt.

    Raises:
        HashError: si la contraseña está vacía, supera los 72 bytes o bcrypt falla.
    """
    if not password:
        raise HashError("Unable to hash the password: password is empty.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HashError(f"Unable to hash the password: longer than {MAX_PASSWORD_BYTES} bytes.")
    try:
        return pwd_context.hash(password)
    except (ValueError, TypeError) as e:
        logger.error(f"Error al generar el hash de la contraseña: {e}", exc_info=True)
        raise HashError() from e


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica una contraseña plana contra un hash almacenado (comparación en tiempo constante)."""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        # Hash corrupto o con formato desconocido: se trata como contraseña incorrecta.
        logger.warning(f"No se pudo verificar el hash almacenado: {e}")
        return False


def now_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

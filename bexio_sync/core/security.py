"""
Utilidades de seguridad: autorizacion de disparos de sync.

El scheduler (o un operador) se autentica con un secreto compartido, ya sea
como `Authorization: Bearer <secreto>` o como query param `?key=<secreto>`.
"""
import hmac
from typing import Optional

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extrae el token de un header Authorization.

    Returns:
        Optional[str]: El token, o None si el header no es de tipo Bearer
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):].strip()


def _matches(candidate: Optional[str], secret: str) -> bool:
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


def verify_sync_secret(
    authorization: Optional[str],
    key: Optional[str],
    secret: Optional[str],
) -> bool:
    """
    Verifica que la invocacion presente el secreto configurado.

    Args:
        authorization: Valor del header Authorization (puede faltar)
        key: Valor del query param `key` (puede faltar)
        secret: Secreto configurado (CRON_SECRET)

    Returns:
        bool: True si el header o el query param coinciden con el secreto.
        Un secreto vacio o ausente nunca autoriza.
    """
    if not secret:
        return False
    return _matches(extract_bearer_token(authorization), secret) or _matches(key, secret)

"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.
Soporta configuracion dinamica para desarrollo (ENVIRONMENT=development)
y produccion (ENVIRONMENT=production).
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Credenciales obligatorias para sincronizar:
    - BEXIO_PAT: token personal de acceso a la API de bexio
    - SUPABASE_URL / SUPABASE_SERVICE_KEY: proyecto destino (service role)
    - CRON_SECRET: secreto compartido con el scheduler; vacio = nadie autorizado
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="bexio Supabase Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # bexio (origen)
    BEXIO_PAT: str = Field(default="")
    BEXIO_API_URL: str = Field(default="https://api.bexio.com")
    BEXIO_PAGE_SIZE: int = Field(default=500)
    # Intervalo minimo entre requests consecutivos (rate limit de bexio)
    BEXIO_REQUEST_DELAY_S: float = Field(default=0.2)
    BEXIO_TIMEOUT_S: int = Field(default=30)
    BEXIO_MAX_PAGES: int = Field(default=1000)

    # Supabase (destino)
    SUPABASE_URL: str = Field(default="")
    SUPABASE_SERVICE_KEY: str = Field(default="")
    UPSERT_BATCH_SIZE: int = Field(default=500)
    SYNC_LOG_TABLE: str = Field(default="sync_log")

    # Control de corridas
    CRON_SECRET: str = Field(default="")
    # "reject" -> 400 ante entidad desconocida; "fallback" -> corrida por defecto
    SYNC_UNKNOWN_ENTITY_POLICY: str = Field(default="reject")
    SYNC_SERIALIZE_RUNS: bool = Field(default=False)
    SYNC_LOCK_TIMEOUT_S: float = Field(default=0.0)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    @computed_field
    @property
    def unknown_entity_fallback(self) -> bool:
        """True si una entidad desconocida debe caer en la corrida por defecto."""
        return self.SYNC_UNKNOWN_ENTITY_POLICY.strip().lower() == "fallback"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()

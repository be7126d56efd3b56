from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AnyUrl, Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = Field(default="dev", description="dev|staging|prod")
    APP_NAME: str = "SEMTAS Beneficios API"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8081

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = "semtas-debug.log"

    # DB
    DB_URL: AnyUrl | str = "sqlite+aiosqlite:///./semtas.db"
    RUN_MIGRATIONS: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Concessão
    CONCESSAO_PRIORIDADE_PADRAO: int = Field(default=3, ge=1, le=5)

    # Agendamento de notificações
    NOTIFICACAO_MAX_TENTATIVAS: int = Field(default=3, ge=1)
    NOTIFICACAO_RETRY_MINUTOS: int = Field(default=5, ge=1)

    # Outbox de eventos
    EVENTOS_MAX_TENTATIVAS: int = Field(default=3, ge=1)
    EVENTOS_RETRY_MINUTOS: int = Field(default=5, ge=1)

@lru_cache
def get_settings() -> Settings:
    return Settings()

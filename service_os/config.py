from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configurações da aplicação (variáveis de ambiente ou arquivo .env)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./service_os.db"
    SECRET_KEY: str = "troque-esta-chave-em-producao"
    # Em produção, considere True se tiver HTTPS
    HTTPS_ONLY: bool = False

    # Usuário administrador criado na primeira inicialização
    ADMIN_EMAIL: str = "admin@serviceos.local"
    ADMIN_PASSWORD: str = "admin"

    LOG_LEVEL: str = "INFO"
    QUOTE_VALIDITY_DAYS: int = 30


settings = Settings()

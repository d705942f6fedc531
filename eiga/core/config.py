from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DEV: bool = False
    DATABASE_URL: str = "sqlite:///./eiga.db"

    SECRET_KEY: str = "change_me_in_env"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    MAGIC_LINK_EXPIRE_MINUTES: int = 15

    HOST: str = "127.0.0.1"
    PORT: int = 8000

    BASE_URL: str = "http://localhost:8000"
    DEFAULT_CALLBACK_PATH: str = "/dashboard"

    INVITE_PREFIX: str = "EIGA"
    INVITE_DEFAULT_DAYS: int = 14

    REALTIME_ENABLED: bool = True
    REALTIME_JOIN_TIMEOUT_SECONDS: float = 4.0

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)


settings = Settings()

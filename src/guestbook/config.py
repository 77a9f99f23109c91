from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from ``GUESTBOOK_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="GUESTBOOK_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///guestbook.db"
    app_title: str = "Guestbook"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8080

    jwt_secret: str = "secret"
    jwt_algorithm: str = "HS256"
    session_cookie_name: str = "GUESTBOOK_SESSION"
    session_expire_minutes: int = 30
    session_cookie_secure: bool = False
    bcrypt_rounds: int = 12

    rate_limit_enabled: bool = True
    seed_entries: bool = True
    admin_username: str | None = None
    admin_password: str | None = None


settings = Settings()

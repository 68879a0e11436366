from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str  # MongoDB URI including the database name, must point to a replica set
    debug: bool = False
    session_ttl_days: int = 30
    transaction_timeout: float = 30.0  # Seconds before a transaction (including its retries) is rolled back
    admin_username: str | None = None  # Bootstrap user created on start when both admin fields are set
    admin_password: str | None = None

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SPACENOTE_",
        "extra": "ignore",
    }

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    stripe_secret_key: str
    stripe_publishable_key: str
    stripe_webhook_secret: str
    webhook_tolerance: int = 300
    order_amount: int = 5999
    max_body_size: int = 1_048_576  # 1 MiB
    static_dir: str = "../client/html"
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 4242

    model_config = {"env_file": ".env", "extra": "ignore", "frozen": True}


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]

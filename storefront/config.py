from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    REDIS_URL: str = "redis://localhost:6379"

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # "supabase" in deployments, "memory" for local runs and tests
    ORDER_STORE_BACKEND: str = "supabase"
    ORDER_TABLE: str = "orders"
    ORDER_NUMBER_PREFIX: str = "Order No"
    ORDER_CONFLICT_RETRIES: int = 1
    ORDER_NUMBER_RETRIES: int = 3

    RATE_LIMIT_ENABLED: bool = True

    @property
    def uses_supabase(self) -> bool:
        return self.ORDER_STORE_BACKEND == "supabase"

    model_config = SettingsConfigDict(env_file=".env")

settings = Settings()

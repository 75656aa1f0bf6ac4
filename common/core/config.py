from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    app_name: str = "subscriptions"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "subscriptions"
    db_use_nullpool: bool = False
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Telemetry
    otel_service_name: str = "subscriptions"
    axiom_token: Optional[str] = None
    axiom_dataset: Optional[str] = None

    # Accounting
    default_plan_name: str = "Basic"
    report_overages: bool = True  # kill switch for overage reporting
    system_username: str = "system"  # written to created_by/last_modified_by


settings = Settings()

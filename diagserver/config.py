from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


MASK_VISIBLE_CHARS = 20
MASK_SUFFIX = "..."


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    appinsights_connectionstring: str = Field(default="", alias="APPINSIGHTS_CONNECTIONSTRING")
    applicationinsights_connection_string: str = Field(
        default="",
        alias="APPLICATIONINSIGHTS_CONNECTION_STRING",
    )
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")
    storage_conn: str = Field(default="(not set)", alias="STORAGE_CONN")
    env_label: str = Field(default="staging", alias="APP_ENV")
    message: str = Field(default="CI redeploy test 20:13:45Z", alias="APP_MESSAGE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    auto_collect_requests: bool = Field(default=True, alias="TELEMETRY_AUTO_COLLECT_REQUESTS")
    auto_collect_dependencies: bool = Field(default=True, alias="TELEMETRY_AUTO_COLLECT_DEPENDENCIES")
    enable_live_metrics: bool = Field(default=True, alias="TELEMETRY_LIVE_METRICS")
    sampling_percentage: float = Field(default=100.0, ge=0.0, le=100.0, alias="TELEMETRY_SAMPLING_PERCENTAGE")

    @property
    def monitoring_connection_string(self) -> str:
        # Both names are in use across App Service configs; first non-empty wins.
        return self.appinsights_connectionstring or self.applicationinsights_connection_string

    @property
    def storage_conn_masked(self) -> str:
        return mask_secret(self.storage_conn)


def mask_secret(value: str, visible: int = MASK_VISIBLE_CHARS) -> str:
    """Display form of a secret: the first ``visible`` characters plus ``...``.

    The suffix is appended even when ``value`` is shorter than ``visible``.
    """

    return value[:visible] + MASK_SUFFIX


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_CONFIG = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True)


class AppSettings(BaseSettings):
    """General application settings."""

    model_config = ENV_CONFIG

    name: str = Field("Proxy Pattern Scanner", validation_alias="APP_NAME")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(None, validation_alias="LOG_FILE")


class CorpusSettings(BaseSettings):
    """Connection to the PostgreSQL database holding the verified contract corpus."""

    model_config = ENV_CONFIG

    host: str = Field("localhost", validation_alias="POSTGRES_HOST")
    port: int = Field(5432, gt=0, validation_alias="POSTGRES_PORT")
    user: str = Field("postgres", validation_alias="POSTGRES_USER")
    password: str = Field("", validation_alias="POSTGRES_PASSWORD")
    database: str = Field("sourcify", validation_alias="POSTGRES_DB")


class PipelineSettings(BaseSettings):
    """Settings for the corpus scan and the candidate resolution passes."""

    model_config = ENV_CONFIG

    # Rows fetched per corpus page in the scan pass
    batch_size: int = Field(default=1000, gt=0, validation_alias="BATCH_SIZE")
    proxy_result_folder: str = Field("proxy-detection-results", validation_alias="PROXY_RESULT_FOLDER")
    multi_proxy_result_folder: str = Field("multi-proxy-analysis-results", validation_alias="MULTI_PROXY_RESULT_FOLDER")


class RpcSettings(BaseSettings):
    """Settings for the per-chain JSON-RPC clients used by the resolution pass."""

    model_config = ENV_CONFIG

    # JSON object mapping chain id -> RPC URL
    config_file: str = Field("rpc-config.json", validation_alias="RPC_CONFIG_FILE")
    # Timeout for a single RPC call (seconds)
    timeout: int = Field(default=30, gt=0, validation_alias="RPC_TIMEOUT")
    max_retries: int = Field(default=3, gt=0, validation_alias="RPC_MAX_RETRIES")
    # Minimum delay between two requests to the same endpoint (seconds)
    min_interval: float = Field(default=0.1, ge=0, validation_alias="RPC_MIN_INTERVAL")


class Settings(BaseSettings):
    """
    Main Settings class that composes all sub-settings.
    Each sub-settings class reads its own flat environment variables.
    """

    app: AppSettings = Field(default_factory=AppSettings)
    corpus: CorpusSettings = Field(default_factory=CorpusSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    rpc: RpcSettings = Field(default_factory=RpcSettings)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Singleton instance
settings = Settings()

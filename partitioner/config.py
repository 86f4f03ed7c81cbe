# partitioner/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class PartitionSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PARTITIONER_", env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./partitioner.db"
    pool_size: int = 5
    max_overflow: int = 10
    echo: bool = False
    log_level: str = "INFO"
    default_interval: str = "day"


def get_settings() -> PartitionSettings:
    return PartitionSettings()

"""
Configuration management using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Dict, Optional

# Load .env file into os.environ so all nested BaseSettings pick up values
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)


class OpenTSDBSettings(BaseSettings):
    """Collector endpoint and export cycle configuration"""
    host: str = Field(default="localhost")
    port: int = Field(default=4242)
    flush_interval_seconds: float = Field(default=10.0)
    # Reporting unit for timer durations: ns, us, ms or s
    duration_unit: str = Field(default="ns")
    prefix: str = Field(default="")
    # JSON object in the environment, e.g. OPENTSDB_TAGS='{"env": "prod"}'
    tags: Dict[str, str] = Field(default_factory=dict)
    connect_timeout_seconds: Optional[float] = Field(default=None)
    write_error_policy: str = Field(default="best_effort")

    class Config:
        env_prefix = "OPENTSDB_"


class MonitoringSettings(BaseSettings):
    """Self-monitoring (Prometheus) configuration"""
    metrics_port: int = Field(default=9090)
    metrics_enabled: bool = Field(default=False)

    class Config:
        env_prefix = ""


class ShutdownSettings(BaseSettings):
    """Graceful shutdown configuration"""
    timeout_seconds: int = Field(default=30)

    class Config:
        env_prefix = "SHUTDOWN_"


class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: str = Field(default="INFO")
    format: str = Field(default="json")

    class Config:
        env_prefix = "LOG_"


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections"""
    opentsdb: OpenTSDBSettings = Field(default_factory=OpenTSDBSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    shutdown: ShutdownSettings = Field(default_factory=ShutdownSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        extra = "ignore"


# Singleton instance - import this in other modules
try:
    settings = Settings()
except Exception as e:
    # A malformed environment (e.g. OPENTSDB_TAGS that is not JSON) must not
    # break imports; the CLI reports the problem when it needs the values.
    print(f"Warning: Could not load settings: {e}")
    settings = None

"""Configuration loader with environment variable support."""

import os
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

import yaml
from dotenv import load_dotenv

load_dotenv()


@dataclass
class AppConfig:
    name: str = "taskengine"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "console"
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///data/taskengine.db"
    echo: bool = False


@dataclass
class EngineConfig:
    pool_size: int = 10
    thread_name_prefix: str = "task-worker"
    persist_results: bool = True


@dataclass
class MonitoringConfig:
    metrics_enabled: bool = True


@dataclass
class Config:
    app: AppConfig = field(default_factory=AppConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        config = cls()

        if "app" in data:
            config.app = AppConfig(**data["app"])

        if "database" in data:
            config.database = DatabaseConfig(**data["database"])

        if "engine" in data:
            config.engine = EngineConfig(**data["engine"])

        if "monitoring" in data:
            config.monitoring = MonitoringConfig(**data["monitoring"])

        return config

    def apply_env(self) -> "Config":
        """Override file values with environment variables."""
        if os.getenv("LOG_LEVEL"):
            self.app.log_level = os.environ["LOG_LEVEL"]

        if os.getenv("LOG_FORMAT"):
            self.app.log_format = os.environ["LOG_FORMAT"]

        if os.getenv("DATABASE_URL"):
            self.database.url = os.environ["DATABASE_URL"]

        if os.getenv("ENGINE_POOL_SIZE"):
            self.engine.pool_size = int(os.environ["ENGINE_POOL_SIZE"])

        if self.engine.pool_size < 1:
            raise ValueError(f"engine.pool_size must be positive, got {self.engine.pool_size}")

        return self

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        if config_path is None:
            config_path = os.getenv("CONFIG_PATH", "config.yaml")

        path = Path(config_path)

        if path.exists():
            with open(path, "r") as f:
                data = yaml.safe_load(f)
            return cls.from_dict(data or {}).apply_env()

        return cls().apply_env()


def get_config() -> Config:
    return Config.load()


settings = get_config()

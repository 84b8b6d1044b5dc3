"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _non_negative(name: str, v: float) -> float:
    if v < 0:
        raise ValueError(f"{name} must be >= 0, got {v}")
    return v


class WorkerConfig(BaseModel):
    """Terminable worker settings."""
    abort_grace: float = 0.05  # Seconds force_abort waits for the thread to unwind

    @field_validator("abort_grace")
    @classmethod
    def validate_abort_grace(cls, v: float) -> float:
        return _non_negative("abort_grace", v)


class ProcessTreeConfig(BaseModel):
    """Process-tree escalation settings."""
    reap_rounds: int = 3
    round_wait: float = 0.25  # Sleep between polling rounds
    control_poll: float = 0.5  # Caller polls the control thread at this interval

    @field_validator("reap_rounds")
    @classmethod
    def validate_reap_rounds(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"reap_rounds must be >= 1, got {v}")
        return v

    @field_validator("round_wait", "control_poll")
    @classmethod
    def validate_waits(cls, v: float, info: ValidationInfo) -> float:
        return _non_negative(info.field_name, v)


class DemoConfig(BaseModel):
    """Parameters for the cancel/wait/abort demonstration."""
    user_object: str = "Harry"
    cooperative: bool = True  # Whether the demo work polls its token
    parameterized: bool = True
    run_before_cancel: float = 5.0
    cooperative_wait: float = 4.0
    abort_wait: float = 4.0
    tick: float = 2.0

    @field_validator("run_before_cancel", "cooperative_wait", "abort_wait", "tick")
    @classmethod
    def validate_durations(cls, v: float, info: ValidationInfo) -> float:
        return _non_negative(info.field_name, v)


class ProcessToolsConfig(BaseSettings):
    """Main configuration."""
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    process_tree: ProcessTreeConfig = Field(default_factory=ProcessTreeConfig)
    demo: DemoConfig = Field(default_factory=DemoConfig)

    model_config = SettingsConfigDict(
        env_prefix="PROCESS_TOOLS_",
        env_nested_delimiter="__",
        extra="ignore",
    )


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ``${VAR}`` references in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "demo.user_object")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used."
            )
            return data
        return value
    return data


def load_config(config_path: Path = Path("process-tools.yaml")) -> ProcessToolsConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}. Using default configuration.")
        return ProcessToolsConfig()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping, got {type(data).__name__}")

    return ProcessToolsConfig(**_expand_env_vars(data))

"""Job configuration for framebatch."""
import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from framebatch.core.errors import ConfigurationError

CONFIG_ENV = "FRAMEBATCH_CONFIG"
DEFAULT_CONFIG_PATH = "./config/job.yaml"


class ComponentConfig(BaseModel):
    """
    One pipeline component.

    ``type`` is the registry tag; any other keys are passed through to the
    component as options.
    """
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Registry type tag, e.g. 'ndjson' or 'accept'")
    enabled: bool = True
    name: Optional[str] = None
    description: Optional[str] = None

    def to_options(self) -> Dict[str, Any]:
        """Options mapping handed to the component constructor."""
        options = self.model_dump(exclude_none=True)
        options.pop("type", None)
        return options


class ContextConfig(BaseModel):
    """Job context selection."""
    type: Literal["transform", "persistent"] = "transform"
    # Copied into the context property bag (and symbol table) on open
    fields: Dict[str, Any] = Field(default_factory=dict)
    # Persistent context only: directory holding context.json (defaults to the job directory)
    directory: Optional[str] = None
    filename: str = "context.json"


class JobConfig(BaseModel):
    """Main job configuration."""
    name: Optional[str] = Field(default=None, description="Job name; also names the job directory")
    job_directory: Optional[str] = None
    work_directory: Optional[str] = None
    context: ContextConfig = Field(default_factory=ContextConfig)

    reader: Optional[ComponentConfig] = None
    filters: list[ComponentConfig] = Field(default_factory=list)
    validators: list[ComponentConfig] = Field(default_factory=list)
    transforms: list[ComponentConfig] = Field(default_factory=list)
    mapper: Optional[ComponentConfig] = None
    writers: list[ComponentConfig] = Field(default_factory=list)
    preprocess: list[ComponentConfig] = Field(default_factory=list)
    postprocess: list[ComponentConfig] = Field(default_factory=list)
    listeners: list[ComponentConfig] = Field(default_factory=list)

    log_level: str = "INFO"
    repeat: int = Field(default=1, ge=1, description="Number of runs the Job performs")
    interval_seconds: float = Field(default=0.0, ge=0, description="Pause between repeated runs")


def load_config(config_path: Optional[str] = None) -> JobConfig:
    """
    Load a job configuration from a YAML or JSON file.

    Args:
        config_path: Path to config file. If None, looks for:
            1. FRAMEBATCH_CONFIG environment variable
            2. ./config/job.yaml

    Returns:
        JobConfig instance

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV)

        if config_path is None and Path(DEFAULT_CONFIG_PATH).exists():
            config_path = DEFAULT_CONFIG_PATH

    if config_path is None:
        raise ConfigurationError(
            f"No config file found. Set {CONFIG_ENV} or create {DEFAULT_CONFIG_PATH}"
        )

    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            if config_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Could not parse config file {config_path}",
            context={"path": str(config_path)},
            original_exception=e,
        )

    return parse_config(data or {}, source=str(config_path))


def parse_config(data: Dict[str, Any], source: str = "<dict>") -> JobConfig:
    """Validate an already-loaded mapping into a JobConfig."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {source} must be a mapping, got {type(data).__name__}")
    try:
        return JobConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid job configuration in {source}",
            context={"errors": e.error_count()},
            original_exception=e,
        )


def save_example_config(output_path: str = "./config/job.example.yaml") -> Path:
    """
    Write an example job configuration.

    Args:
        output_path: Where to save the example config
    """
    example = {
        "name": "orders-daily",
        "context": {"type": "persistent", "fields": {"Region": "north"}},
        "reader": {"type": "ndjson", "path": "./data/orders.ndjson"},
        "filters": [{"type": "accept", "field": "status", "equals": "open"}],
        "validators": [{"type": "not_null", "field": "order_id", "description": "order_id is required"}],
        "transforms": [{"type": "trim", "fields": ["customer"]}],
        "writers": [{"type": "csv", "path": "${JobDirectory}/orders-${YYYY}${MM}${DD}.csv"}],
        "listeners": [{"type": "logger"}],
        "log_level": "INFO",
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        yaml.dump(example, f, default_flow_style=False, sort_keys=False)

    return output_path

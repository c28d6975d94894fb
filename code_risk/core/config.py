import logging
from typing import Any, Dict, Optional
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

# Default configuration values
DEFAULT_CONFIG_PATH = "coderisk.config.yaml"
DEFAULT_RULES_DB_PATH = "cve_data/generated_cve_rules.json"
DEFAULT_VECTOR_DB_PATH = "cve_data/generated_cve_db.json"
DEFAULT_LANGUAGE = "typescript"
DEFAULT_OUTPUT_FORMAT = "json"
DEFAULT_WEIGHT_FUNCTIONALITY = 0.40
DEFAULT_WEIGHT_RESOURCE = 0.30
DEFAULT_WEIGHT_DEPENDABILITY = 0.30
DEFAULT_PROXIMITY_LINES = 5
DEFAULT_TOP_K = 3


class FusionWeights(BaseModel):
    """
    Top-level blend weights (wF, wR, wD) for the final score.

    Weights need not sum to one, but must be non-negative so the score stays
    monotone in each dimension.
    """
    functionality: float = Field(default=DEFAULT_WEIGHT_FUNCTIONALITY, alias="wF")
    resource: float = Field(default=DEFAULT_WEIGHT_RESOURCE, alias="wR")
    dependability: float = Field(default=DEFAULT_WEIGHT_DEPENDABILITY, alias="wD")

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("functionality", "resource", "dependability")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("fusion weights must be non-negative")
        return value


class CodeRiskConfig(BaseModel):
    """
    Central configuration model for code-risk.
    """
    weights: FusionWeights = Field(default_factory=FusionWeights)
    rules_db_path: str = Field(default=DEFAULT_RULES_DB_PATH)
    vector_db_path: str = Field(default=DEFAULT_VECTOR_DB_PATH)
    language: str = Field(default=DEFAULT_LANGUAGE)
    output_format: str = Field(default=DEFAULT_OUTPUT_FORMAT)
    proximity_default_lines: int = Field(default=DEFAULT_PROXIMITY_LINES)
    top_k: int = Field(default=DEFAULT_TOP_K)

    # Allow extra fields for flexibility
    class Config:
        extra = "allow"


def load_config(
    config_path: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> CodeRiskConfig:
    """
    Load configuration from file and overrides.

    Priority:
    1. CLI Arguments (if provided and not None)
    2. Config File (if provided or found at default path)
    3. Default Values

    Args:
        config_path: Path to the YAML config file. If None, tries 'coderisk.config.yaml'.
        cli_args: Dictionary of CLI arguments to override config values.

    Returns:
        CodeRiskConfig: The resolved configuration object.
    """
    config_data: Dict[str, Any] = {}

    target_path = config_path if config_path else DEFAULT_CONFIG_PATH
    path_obj = Path(target_path)

    if path_obj.exists() and path_obj.is_file():
        try:
            with open(path_obj, 'r', encoding='utf-8') as f:
                file_data = yaml.safe_load(f)
                if file_data:
                    config_data.update(file_data)
            logging.info(f"Loaded configuration from {target_path}")
        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load config file {target_path}: {e}")
    elif config_path:
        logging.warning(f"Config file not found at explicit path: {config_path}")
    else:
        logging.debug(f"No config file found at {DEFAULT_CONFIG_PATH}, using defaults.")

    if cli_args:
        # Individual weight flags merge into the weights block instead of replacing it
        weight_overrides = {
            key: cli_args.get(key) for key in ("wF", "wR", "wD") if cli_args.get(key) is not None
        }
        if weight_overrides:
            merged = dict(config_data.get("weights") or {})
            merged.update(weight_overrides)
            config_data["weights"] = merged

        for key, value in cli_args.items():
            if key in ("wF", "wR", "wD"):
                continue
            if value is not None:
                config_data[key] = value

    return CodeRiskConfig(**config_data)

# ubispec/config.py
"""Validation settings, loaded from an optional ubispec.yaml."""

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ubispec.errors import UbiSpecError
from ubispec.loader import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "ubispec.yaml"


class DeciderPolicy(str, Enum):
    STRICT = "strict"
    EXTERNAL = "external"


class ValidationConfig(BaseModel):
    decider_policy: DeciderPolicy = Field(
        DeciderPolicy.STRICT,
        description="How a decider without a lifecycle document is reported: "
        "`strict` → UnknownDecider error, `external` → ExternalDecider advisory.",
    )
    external_deciders: List[str] = Field(
        default_factory=list,
        description="Deciders that live in another bounded context. Always reported as ExternalDecider.",
    )
    include_all_fail_row: bool = Field(
        False,
        description="Append a row with every constraint violated to decision tables and scenario matrices.",
    )
    check_outcome_coverage: bool = Field(
        True,
        description="Report conditional Then entries without a keyed Outcome section.",
    )
    model_root: Optional[str] = Field(
        None,
        description="Directory `model:` paths are resolved against. Defaults to each document's directory.",
    )

    model_config = ConfigDict(extra="forbid")

    def is_external(self, decider: str) -> bool:
        return decider in self.external_deciders or self.decider_policy == DeciderPolicy.EXTERNAL


class ConfigError(UbiSpecError):
    pass


def load_config(path: Optional[Union[str, Path]] = None) -> ValidationConfig:
    """
    Reads a ValidationConfig from YAML. A missing file yields the defaults;
    an unreadable or invalid one raises ConfigError.
    """
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_NAME)
    if not config_path.exists():
        if path:
            raise ConfigError(f"Config file not found: {config_path}")
        return ValidationConfig()

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = load_yaml(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    try:
        config = ValidationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e
    logger.debug("Loaded config from %s: %s", config_path, config)
    return config

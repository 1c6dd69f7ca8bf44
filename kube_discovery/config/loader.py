"""YAML loading of discovery configs."""

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from kube_discovery.config.models import DiscoveryConfig
from kube_discovery.errors import ConfigError


logger = structlog.get_logger()

SD_CONFIGS_KEY = "kubernetes_sd_configs"


def _normalize_entry(entry: dict[str, object]) -> dict[str, object]:
    """Accept ``namespaces: {names: [...]}`` as well as a plain list."""
    namespaces = entry.get("namespaces")
    if isinstance(namespaces, dict):
        entry = {**entry, "namespaces": namespaces.get("names") or []}
    return entry


def load_discovery_configs(file_path: Path) -> list[DiscoveryConfig]:
    """Load discovery configs from a YAML file.

    The file holds a ``kubernetes_sd_configs`` list. Relative credential
    file paths in each entry resolve against the file's directory.

    Args:
        file_path: Path to the YAML file.

    Returns:
        Validated configs in file order.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    try:
        parsed = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        msg = f"cannot load {file_path}: {e}"
        raise ConfigError(msg) from e

    entries = parsed.get(SD_CONFIGS_KEY) if isinstance(parsed, dict) else None
    if not isinstance(entries, list):
        msg = f"{file_path}: missing {SD_CONFIGS_KEY} list"
        raise ConfigError(msg)

    base_dir = str(file_path.resolve().parent)
    configs: list[DiscoveryConfig] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            msg = f"{file_path}: {SD_CONFIGS_KEY}[{index}] must be a mapping"
            raise ConfigError(msg)
        try:
            config = DiscoveryConfig.model_validate(
                {"base_dir": base_dir, **_normalize_entry(entry)}
            )
        except ValidationError as e:
            msg = f"{file_path}: {SD_CONFIGS_KEY}[{index}] is invalid: {e}"
            raise ConfigError(msg) from e
        configs.append(config)

    logger.info(
        "discovery_configs_loaded",
        component="config",
        path=str(file_path),
        count=len(configs),
    )
    return configs

"""
Configuration loading for the crossed-market arbitrage core.

Settings come from an optional YAML file, overlaid with the process
environment (and a ``.env`` file when present). The result is an immutable
``ArbitrageConfig`` that is injected into the solver and dispatcher.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv

from .dex_mev.config_schema import ArbitrageConfig, ExecutionMode
from .exceptions import ConfigurationError
from .utils import get_logger

logger = get_logger(__name__)


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    return config_dict


def _parse_int(environ: Mapping[str, str], name: str) -> int:
    try:
        return int(environ[name], 10)
    except ValueError:
        raise ConfigurationError(
            f"Environment variable {name} must be an integer, got {environ[name]!r}"
        )


def env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Translate recognised environment variables into config keys."""
    overrides: Dict[str, Any] = {}

    if environ.get("ARBITRAGE_MIN_PROFIT_WEI_THRESHOLD"):
        overrides["min_profit_wei"] = _parse_int(
            environ, "ARBITRAGE_MIN_PROFIT_WEI_THRESHOLD"
        )
    if "ARBITRAGE_LOG_ENABLED" in environ:
        overrides["log_enabled"] = environ["ARBITRAGE_LOG_ENABLED"] == "1"
    if "ARBITRAGE_LOG_VERBOSE" in environ:
        overrides["log_verbose"] = environ["ARBITRAGE_LOG_VERBOSE"] == "1"
    if environ.get("ARBITRAGE_LOG_TOP_N"):
        overrides["log_top_n"] = _parse_int(environ, "ARBITRAGE_LOG_TOP_N")

    execute_locally = environ.get("FORK_EXECUTE_LOCALLY") == "1"
    simulate_locally = environ.get("FORK_SIMULATE_LOCALLY") == "1"
    if execute_locally and simulate_locally:
        logger.warning(
            "Both FORK_EXECUTE_LOCALLY and FORK_SIMULATE_LOCALLY are set; local execution wins"
        )
    if execute_locally:
        overrides["mode"] = ExecutionMode.LOCAL_EXECUTION.value
    elif simulate_locally:
        overrides["mode"] = ExecutionMode.LOCAL_SIMULATION.value

    if environ.get("FORK_EXECUTE_EVERY_N_BLOCKS"):
        overrides["execute_every_n_blocks"] = _parse_int(
            environ, "FORK_EXECUTE_EVERY_N_BLOCKS"
        )

    return overrides


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ArbitrageConfig:
    """
    Build the process-wide configuration.

    Args:
        config_path: Optional YAML file with ``ArbitrageConfig`` keys
        environ: Environment mapping; defaults to ``os.environ`` after
            loading a ``.env`` file

    Returns:
        Immutable ArbitrageConfig

    Raises:
        ConfigurationError: If the file or any value is invalid
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    config_dict: Dict[str, Any] = load_yaml_config(config_path) if config_path else {}
    config_dict.update(env_overrides(environ))

    try:
        config = ArbitrageConfig.from_dict(config_dict)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid arbitrage configuration: {e}") from e

    logger.info(
        f"Arbitrage config: mode={config.mode.value} minProfitWei={config.min_profit_wei} "
        f"executeEveryN={config.execute_every_n_blocks}"
    )
    return config

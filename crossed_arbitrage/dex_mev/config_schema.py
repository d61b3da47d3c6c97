"""
Configuration schema for the crossed-market arbitrage core.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

ETHER = 10**18

WETH_ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"

# Ascending ladder of trial volumes scanned by the volume optimizer
DEFAULT_TEST_VOLUMES: Tuple[int, ...] = (
    ETHER // 100,
    ETHER // 10,
    ETHER // 6,
    ETHER // 4,
    ETHER // 2,
    ETHER,
    ETHER * 2,
    ETHER * 5,
    ETHER * 10,
)

DEFAULT_PROBE_SIZE = ETHER // 100
DEFAULT_MIN_PROFIT_WEI = ETHER // 1000
DEFAULT_GAS_ANOMALY_CEILING = 1_400_000


_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def _parse_bool(value) -> bool:
    """Accept YAML booleans, 0/1 and the usual string spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    raise ValueError(f"Expected a boolean, got {value!r}")


class ExecutionMode(Enum):
    """How ranked opportunities are dispatched."""

    LOCAL_EXECUTION = "local_execution"
    LOCAL_SIMULATION = "local_simulation"
    PRODUCTION = "production"


@dataclass(frozen=True)
class ArbitrageConfig:
    """Process-wide settings, read once and injected at construction."""

    # Trading parameters
    base_token: str = WETH_ADDRESS
    min_profit_wei: int = DEFAULT_MIN_PROFIT_WEI
    probe_size: int = DEFAULT_PROBE_SIZE
    test_volumes: Tuple[int, ...] = DEFAULT_TEST_VOLUMES

    # Execution
    mode: ExecutionMode = ExecutionMode.PRODUCTION
    execute_every_n_blocks: int = 1
    gas_anomaly_ceiling: int = DEFAULT_GAS_ANOMALY_CEILING

    # Diagnostics
    log_enabled: bool = False
    log_verbose: bool = False
    log_top_n: int = 5

    def __post_init__(self):
        volumes = tuple(int(v) for v in self.test_volumes)
        if not volumes:
            raise ValueError("test_volumes must not be empty")
        if any(b <= a for a, b in zip(volumes, volumes[1:])):
            raise ValueError(f"test_volumes must be strictly ascending: {volumes}")
        if self.probe_size <= 0:
            raise ValueError(f"probe_size must be positive, got {self.probe_size}")
        if self.execute_every_n_blocks < 1:
            raise ValueError(
                f"execute_every_n_blocks must be >= 1, got {self.execute_every_n_blocks}"
            )
        object.__setattr__(self, "test_volumes", volumes)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "ArbitrageConfig":
        """Create config from dictionary."""
        mode = config_dict.get("mode", ExecutionMode.PRODUCTION.value)
        if not isinstance(mode, ExecutionMode):
            mode = ExecutionMode(str(mode).lower())

        return cls(
            # Trading parameters
            base_token=config_dict.get("base_token", WETH_ADDRESS),
            min_profit_wei=int(config_dict.get("min_profit_wei", DEFAULT_MIN_PROFIT_WEI)),
            probe_size=int(config_dict.get("probe_size", DEFAULT_PROBE_SIZE)),
            test_volumes=tuple(config_dict.get("test_volumes", DEFAULT_TEST_VOLUMES)),
            # Execution
            mode=mode,
            execute_every_n_blocks=int(config_dict.get("execute_every_n_blocks", 1)),
            gas_anomaly_ceiling=int(
                config_dict.get("gas_anomaly_ceiling", DEFAULT_GAS_ANOMALY_CEILING)
            ),
            # Diagnostics
            log_enabled=_parse_bool(config_dict.get("log_enabled", False)),
            log_verbose=_parse_bool(config_dict.get("log_verbose", False)),
            log_top_n=int(config_dict.get("log_top_n", 5)),
        )

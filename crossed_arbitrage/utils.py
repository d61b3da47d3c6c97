"""
Common helpers for the crossed-market arbitrage system.

Logger construction and wei formatting shared by the solver, the bundle
builder and the dispatcher.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union

WEI_DECIMALS = 18


# Amount utilities
def format_wei(amount: int, decimals: int = WEI_DECIMALS) -> str:
    """
    Render an integer token amount as a decimal string.

    Args:
        amount: Amount in the token's smallest unit
        decimals: Number of decimals of the token (18 for WETH)

    Returns:
        Decimal string, e.g. ``format_wei(15 * 10**15) == "0.015"``
    """
    value = Decimal(amount).scaleb(-decimals)
    text = format(value.normalize(), "f")
    return text


def to_hex(data: Union[bytes, str]) -> str:
    """Return ``data`` as a 0x-prefixed hex string."""
    if isinstance(data, str):
        return data if data.startswith("0x") else "0x" + data
    return "0x" + bytes(data).hex()


def describe_error(error: BaseException) -> str:
    """Pick the most useful message from a web3 / relay exception."""
    for attr in ("reason", "message"):
        value = getattr(error, attr, None)
        if value:
            return str(value)
    return str(error) or type(error).__name__


def extract_revert_data(error: BaseException) -> Optional[str]:
    """Return revert data carried by an RPC error, if any."""
    data = getattr(error, "data", None)
    if data is None and error.args:
        # web3 ContractLogicError / ContractCustomError carry (message, data)
        if len(error.args) > 1 and isinstance(error.args[1], (str, bytes)):
            data = error.args[1]
        elif isinstance(error.args[0], dict):
            data = error.args[0].get("data")
    if data is None:
        return None
    if isinstance(data, bytes):
        return to_hex(data)
    return str(data)


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger

"""
Exception hierarchy for the crossed-market arbitrage system.

Provides specific exception types for the different failure categories so
the dispatcher can tell a skippable candidate from a terminal failure.
"""

from typing import Any, Dict, Optional


class CrossedArbitrageError(Exception):
    """Base exception for all crossed-market arbitrage errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(CrossedArbitrageError):
    """Raised when there are configuration-related issues."""

    pass


class ValidationError(CrossedArbitrageError):
    """Raised when validation of data or arguments fails."""

    pass


class MarketError(CrossedArbitrageError):
    """Raised when a market cannot quote or produce call data."""

    def __init__(
        self,
        message: str,
        market_address: Optional[str] = None,
        token: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.market_address = market_address
        self.token = token


class ExecutionError(CrossedArbitrageError):
    """Raised when dispatching an opportunity fails."""

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.token = token


class BundleBuildError(ExecutionError):
    """Raised when either leg's call data cannot be built."""

    pass


class SubmissionError(ExecutionError):
    """Raised when the node rejects a locally broadcast transaction."""

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        revert_data: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, token, details)
        self.revert_data = revert_data


class NoSubmissionError(ExecutionError):
    """Raised when every ranked candidate was exhausted without a submission."""

    def __init__(
        self,
        message: str,
        candidates: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, None, details)
        self.candidates = candidates


class RelayError(CrossedArbitrageError):
    """Raised when the bundle relay cannot be reached or answers with an error."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code

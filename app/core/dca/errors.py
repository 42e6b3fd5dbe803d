"""
DCA pipeline errors.

Only hard failures are exceptions. Expected "nothing to do" outcomes from the
aggregator are reported through ``QuoteResult`` instead.
"""

from typing import Optional


class DCAPipelineError(Exception):
    """Base class for hard execution failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigReadError(DCAPipelineError):
    """Reading a session's on-chain config failed."""

    def __init__(self, buyer: str, destination_token: str, cause: Optional[Exception] = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to read DCA config for {buyer} -> {destination_token}{detail}")
        self.buyer = buyer
        self.destination_token = destination_token


class QuoteParseError(DCAPipelineError):
    """Relay answered 2xx with a body we cannot use."""


class SubmissionError(DCAPipelineError):
    """Base for runDCA submission failures."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ExecutorNotConfiguredError(SubmissionError):
    """No signing account is available for runDCA."""

    def __init__(self):
        super().__init__("Executor account is not configured")


class TransactionRevertedError(SubmissionError):
    """runDCA was mined with status 0."""

    def __init__(self, tx_hash: str):
        super().__init__(f"runDCA reverted: {tx_hash}", tx_hash=tx_hash)


class ConfirmationTimeoutError(SubmissionError):
    """No receipt arrived within the confirmation timeout."""

    def __init__(self, tx_hash: str, timeout_s: float):
        super().__init__(f"runDCA not confirmed after {timeout_s:.0f}s: {tx_hash}", tx_hash=tx_hash)
        self.timeout_s = timeout_s

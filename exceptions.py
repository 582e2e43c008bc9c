from typing import Optional


class EngineError(Exception):
    """Base error for anything that aborts a processing run."""

    error_code = "ENGINE_ERROR"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InputSourceError(EngineError):
    """The record source could not be opened or read."""

    error_code = "INPUT_UNREADABLE"


class RecordFormatError(EngineError):
    """A record is structurally malformed (bad field, header or column count)."""

    error_code = "RECORD_FORMAT"

    def __init__(self, detail: str, line: Optional[int] = None):
        if line is not None:
            detail = f"line {line}: {detail}"
        super().__init__(detail)
        self.line = line


class MissingAmountError(RecordFormatError):
    """A deposit or withdrawal record carries no amount."""

    error_code = "MISSING_AMOUNT"


class BalancePrecisionError(EngineError):
    """A balance can no longer be represented exactly."""

    error_code = "BALANCE_PRECISION"

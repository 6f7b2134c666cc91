"""Typed failures raised by the amortization engine.

Every error derives from ``ValueError`` so that callers which only care
about "bad input" can keep catching that, while the CLI and the HTTP layer
can tell the kinds apart. None of these are retried: the engine is a pure
function, so a failure recurs on identical input.
"""


class LoanEngineError(ValueError):
    """Base class for all engine errors."""

    kind = "LoanEngineError"


class InvalidTerms(LoanEngineError):
    """Loan terms or a scenario cannot produce a schedule."""

    kind = "InvalidTerms"


class InvalidDateRange(LoanEngineError):
    """A day-count interval whose end is not after its start."""

    kind = "InvalidDateRange"

    def __init__(self, message, start=None, end=None) -> None:
        super().__init__(message)
        self.start = start
        self.end = end


class InvalidRepayment(LoanEngineError):
    """Non-positive repayment amount or installment index out of range."""

    kind = "InvalidRepayment"


class UnsupportedConvention(LoanEngineError):
    """Day-count convention tag not recognised."""

    kind = "UnsupportedConvention"

    def __init__(self, convention) -> None:
        super().__init__(f"Unsupported day-count convention: {convention!r}")
        self.convention = convention

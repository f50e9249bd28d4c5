"""Error taxonomy for the diagnostic engine.

Both errors are fail-fast: a subject's diagnostic is either fully computed
or reported as blocked by one of these.
"""


class DiagnosticError(Exception):
    """Base class for expected, reportable engine failures."""


class ConfigurationError(DiagnosticError):
    """An indicator lacks the parameters its normalization method needs.

    Not retryable; must be surfaced to an administrator.
    """

    def __init__(self, indicator_code: str, reason: str) -> None:
        self.indicator_code = indicator_code
        self.reason = reason
        super().__init__(f"Indicator {indicator_code}: {reason}")


class InsufficientDataError(DiagnosticError):
    """A pillar has no scored indicators where a definite severity is required."""

    def __init__(self, pillar: str) -> None:
        self.pillar = pillar
        super().__init__(f"Diagnosis incomplete: pillar {pillar} has no scored indicators")

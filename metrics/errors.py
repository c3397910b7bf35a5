"""Exceptions raised by the metrics package."""


class MetricsError(Exception):
    """Base class for metrics errors."""


class SourceError(MetricsError):
    """A single metric source could not be read."""

    def __init__(self, source, message):
        super().__init__(f"{source}: {message}")
        self.source = source


class SamplingError(MetricsError):
    """No metric source could be read during a sample."""

    def __init__(self, message, failures=None):
        super().__init__(message)
        self.failures = frozenset(failures or ())

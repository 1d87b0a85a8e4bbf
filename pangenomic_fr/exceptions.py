# pangenomic_fr/exceptions.py
"""
Exception classes for the frequented-region finder.
Configuration problems and data-consistency problems are kept apart so callers
can tell a bad parameter from a graph that breaks the finder's assumptions.
"""


class PangenomicFRError(Exception):
    """Base exception class for all frequented-region finder errors."""

    def __init__(self, message="An error occurred in the frequented-region finder", details=None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(PangenomicFRError, ValueError):
    """Exception raised for invalid or inconsistent run parameters."""

    def __init__(self, message="Invalid configuration", details=None):
        super().__init__(message, details)


class DataConsistencyError(PangenomicFRError):
    """Exception raised when graph or FR data violate the finder's contract."""

    def __init__(self, message="Inconsistent graph data", details=None):
        super().__init__(message, details)

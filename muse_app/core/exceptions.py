# muse_app/core/exceptions.py


class MuseError(Exception):
    """Base class for all errors raised by muse_app."""


class ConfigurationError(MuseError):
    """
    A programming or configuration mistake (catalog, KPI subsets, rule set).
    These propagate to the caller and are never swallowed.
    """


class UnknownMetricKeyError(ConfigurationError, KeyError):
    def __init__(self, metric_key: str, context: str = "catalog lookup"):
        self.metric_key = metric_key
        self.context = context
        super().__init__(f"Unknown metric key '{metric_key}' ({context}).")

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]


class InvalidMetricReference(ConfigurationError):
    """A subset, market list or rule references something the catalog does not define."""


class DuplicateMetricKeyError(ConfigurationError):
    pass


class EmptyDatasetError(ConfigurationError):
    """Raised when an operation needs at least one record, e.g. latest_month()."""


class DataFormatError(MuseError, ValueError):
    """Raised when delimited input cannot be shaped into metric records."""

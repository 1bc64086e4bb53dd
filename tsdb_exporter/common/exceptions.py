"""
Custom exceptions for the OpenTSDB exporter.
Hierarchical exception structure so callers can catch one root type.
"""


class BaseExporterException(Exception):
    """Base exception for the OpenTSDB exporter"""
    pass


class CollectorConnectionError(BaseExporterException):
    """Error opening the TCP connection to the OpenTSDB collector"""

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Cannot connect to collector {host}:{port}: {reason}")


class MetricWriteError(BaseExporterException):
    """Error writing put lines to an open collector connection"""

    def __init__(self, metric_name: str, reason: str):
        self.metric_name = metric_name
        self.reason = reason
        super().__init__(f"Failed to write metric '{metric_name}': {reason}")


class ConfigurationError(BaseExporterException):
    """Error in configuration loading or validation"""
    pass


class RegistryLoadError(ConfigurationError):
    """Error importing the metrics registry named on the command line"""
    pass

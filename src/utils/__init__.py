from .logger import setup_logging, get_logger, version_logger, PerformanceLogger
from .output_formatter import OutputFormatter, output_formatter

__all__ = [
    "setup_logging",
    "get_logger",
    "version_logger",
    "PerformanceLogger",
    "OutputFormatter",
    "output_formatter",
]

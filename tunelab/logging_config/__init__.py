"""
Logging Configuration Module
============================

Responsibility:
- Root logger level and handler setup from the `logging` config section.
- Coloured console output and rotating UTF-8 log files.
"""

from .logging_config import LoggingConfigurator, ColoredFormatter

__all__ = ['LoggingConfigurator', 'ColoredFormatter']

"""
Configuration Manager Module
============================

Responsibility:
- Load the JSON config, validate it against config/schema.json (jsonschema),
  registry names, search-space bounds and resource limits.
- Derive per-component seeds from the master seed and save run artifacts.
"""

from .config_manager import ConfigurationManager

__all__ = ['ConfigurationManager']

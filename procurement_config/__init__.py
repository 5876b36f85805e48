"""
Procurement service configuration.

Single public entry point: ``load_settings()`` returns a frozen
``ServiceSettings`` resolved from defaults, YAML and the environment.
"""

from procurement_config.settings import ServiceSettings, load_settings

__all__ = ["ServiceSettings", "load_settings"]

"""
Pagewire plugins.

Startup order: core (10), database (20), services (30), sweep (40).
Shutdown runs highest priority first: sweep, services, database, core.
"""

from .core_plugin import CorePlugin
from .database_plugin import DatabasePlugin
from .services_plugin import ServicesPlugin
from .sweep_plugin import CredentialSweepPlugin

__all__ = ["CorePlugin", "CredentialSweepPlugin", "DatabasePlugin", "ServicesPlugin"]

"""
Pagewire - multi-tenant Messenger/Instagram webhook backend.

Keeps delegated OAuth credentials fresh and routes inbound messaging events
through persistence, profile extraction and AI reply generation.
"""

__version__ = "0.1.0"

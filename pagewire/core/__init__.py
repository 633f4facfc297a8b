"""Core: configuration, logging, exceptions, the app factory and its plugins."""

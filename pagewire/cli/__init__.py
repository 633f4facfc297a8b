"""Pagewire command-line interface."""

"""Authoritative multiplayer session server for a hex resource-trading board game."""

__version__ = "0.1.0"

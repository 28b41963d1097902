"""Socia backend: chat relay, conversational memory and reply suggestions."""

__version__ = "0.1.0"

"""Pulseboard — live availability dashboard for a remote list of HTTP instances."""

__version__ = "0.1.0"

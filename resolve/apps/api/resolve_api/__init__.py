"""Resolve API: payment-dispute support backend for Australian tradies."""

__version__ = "1.0.0"

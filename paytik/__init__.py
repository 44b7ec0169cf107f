"""PAYTIK wallet and credit core."""

__version__ = "0.1.0"

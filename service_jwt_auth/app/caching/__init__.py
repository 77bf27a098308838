"""
Caching for credential and consumer lookups.
"""

from .single_flight import SingleFlightCache

__all__ = ["SingleFlightCache"]

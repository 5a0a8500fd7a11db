"""
slotbooker - publish weekly availability and book meeting slots without double-booking.
"""

__version__ = "0.1.0"

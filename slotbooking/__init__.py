"""
slotbooking - offer free half-hour meeting slots and book them.
"""

__version__ = "0.1.0"

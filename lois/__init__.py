"""
LOIS - Legal Operations Intelligence System query service.
"""

__version__ = "0.1.0"

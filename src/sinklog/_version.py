"""
Fallback version module.

Release builds overwrite this value; source checkouts keep the default so
imports keep working.
"""

__version__ = "0.1.0"

"""
beautybook - booking engine for beauty and personal-care professionals.
"""

__version__ = "1.0.0"

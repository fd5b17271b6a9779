"""
Utility modules
"""

__all__ = []

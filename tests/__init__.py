"""
Test package for StyleMatch
"""

# Version info
__version__ = "1.0.0"

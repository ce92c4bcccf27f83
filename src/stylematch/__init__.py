"""
StyleMatch
Personalization, recommendation and outfit-compatibility engine
"""

__version__ = "1.0.0"

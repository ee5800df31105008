"""
Mango Quests - quest lifecycle and procedural quest generation.
"""

__version__ = "0.3.0"

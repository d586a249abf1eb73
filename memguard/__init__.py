"""
Memory Guardian: local semantic memory for conversational agents.
"""

__version__ = "1.0.0"

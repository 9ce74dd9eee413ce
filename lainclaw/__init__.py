"""
lainclaw - Chat gateway for an LLM agent runtime
"""

__version__ = "0.3.0"
__logo__ = "🐾"

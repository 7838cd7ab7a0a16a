"""
replygate - gating and skill orchestration for conversational auto-reply agents.
"""

__version__ = "0.3.0"
__logo__ = "🛂"

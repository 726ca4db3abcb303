"""
Icebreaker

A voice-driven facilitator that runs self-introductions and icebreaker
conversations for a group, one participant at a time.
"""

__version__ = "0.1.0"

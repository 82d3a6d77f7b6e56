"""
Blackboard Session Bot

Keeps Blackboard sessions alive per user, caches course and assignment
data, and delivers recurring assignment summaries to chat channels.
"""

__version__ = "1.0.0"

"""Authentication module for Blackboard Session Bot."""

from blackboard_bot.auth.login import perform_login
from blackboard_bot.auth.session import MAX_KEEP_ALIVE_FAILURES, SessionManager, SessionState

__all__ = ["MAX_KEEP_ALIVE_FAILURES", "SessionManager", "SessionState", "perform_login"]

"""Telegram notification module for Blackboard Session Bot."""

from blackboard_bot.notify.formatters import MessageFormatter
from blackboard_bot.notify.telegram import TelegramNotifier

__all__ = ["MessageFormatter", "TelegramNotifier"]

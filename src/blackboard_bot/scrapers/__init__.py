"""Blackboard payload scrapers."""

from blackboard_bot.scrapers.assignments import AssignmentScraper
from blackboard_bot.scrapers.base import BaseScraper
from blackboard_bot.scrapers.courses import CourseScraper

__all__ = [
    "AssignmentScraper",
    "BaseScraper",
    "CourseScraper",
]

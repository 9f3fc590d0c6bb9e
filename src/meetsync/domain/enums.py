from __future__ import annotations

from enum import Enum


class Category(str, Enum):
    """Weekday stand each meetup belongs to."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


CATEGORIES: tuple[Category, ...] = tuple(Category)

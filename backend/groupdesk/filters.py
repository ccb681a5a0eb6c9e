"""Query predicate builders.

Small functions returning SQLAlchemy boolean expressions. Repositories
combine them in `where()` clauses so each filtering rule lives in one
place and can be reused across queries.
"""

from datetime import datetime
from typing import Iterable, List

from sqlalchemy import true
from sqlmodel import col

from . import models
from .schemas import GroupsFilter


def key_dates():
    """Events whose type is flagged as a key date."""
    return col(models.Event.event_type).has(col(models.EventType.is_key_date).is_(True))


def event_by_group_ids(group_ids: Iterable[int]):
    return col(models.Event.group_id).in_(list(group_ids))


def event_between_dates(start: datetime, finish: datetime):
    """Events happening in the closed interval `[start, finish]`."""
    return col(models.Event.date_time).between(start, finish)


def group_by_location_ids(location_ids: Iterable[int]):
    return col(models.Group.location_id).in_(list(location_ids))


def group_filter(groups_filter: GroupsFilter) -> List:
    """Translate a `GroupsFilter` into a list of predicates.

    Empty criteria impose no constraint; an entirely empty filter
    yields a single always-true predicate so callers can splat the
    result into `where()` unconditionally.
    """
    clauses = []
    if groups_filter.locations:
        clauses.append(group_by_location_ids(groups_filter.locations))
    if groups_filter.statuses:
        clauses.append(col(models.Group.status_id).in_(groups_filter.statuses))
    if groups_filter.teachers:
        clauses.append(col(models.Group.teachers).any(col(models.User.id).in_(groups_filter.teachers)))
    return clauses or [true()]

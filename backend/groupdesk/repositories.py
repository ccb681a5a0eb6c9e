"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
locations, groups, students, events and the lookup tables).
Repositories return SQLModel objects and perform commits/refreshes
where appropriate. `get_or_raise` style helpers turn a missing row into
`NotFound` so callers never continue with an absent entity.
"""

from datetime import datetime
from typing import Iterable, List, Optional
from sqlmodel import Session, select
from sqlalchemy.exc import IntegrityError
from . import filters, models
from .exceptions import NotFound, ValidationFailure
from .schemas import GroupsFilter


class _Repository:
    model = None
    not_found_key = ""

    def __init__(self, session: Session):
        self.session = session

    def get(self, entity_id: int):
        """Fetch a row by primary key or return `None`."""
        return self.session.get(self.model, entity_id)

    def get_or_raise(self, entity_id: Optional[int]):
        """Fetch a row by primary key or raise `NotFound`."""
        entity = self.get(entity_id) if entity_id is not None else None
        if entity is None:
            raise NotFound(self.not_found_key)
        return entity

    def find_all(self) -> List:
        return self.session.exec(select(self.model).order_by(self.model.id)).all()


class UserRepository(_Repository):
    """CRUD operations for `User` objects."""
    model = models.User
    not_found_key = "notFound.user"

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get_by_username_or_raise(self, username: str) -> models.User:
        user = self.get_by_username(username)
        if user is None:
            raise NotFound(self.not_found_key)
        return user


class LocationRepository(_Repository):
    model = models.Location
    not_found_key = "notFound.location"

    def find_coordinator(self, location_id: int) -> Optional[models.User]:
        """Return the coordinator assigned to the location, if any."""
        stmt = select(models.User).where(
            models.User.location_id == location_id,
            models.User.role == models.Role.COORDINATOR,
        ).order_by(models.User.id)
        return self.session.exec(stmt).first()


class StatusRepository(_Repository):
    model = models.Status
    not_found_key = "notFound.status"


class EnglishLevelRepository(_Repository):
    model = models.EnglishLevel
    not_found_key = "notFound.englishLevel"

    def find_by_name(self, name: Optional[str]) -> models.EnglishLevel:
        level = self.session.exec(select(models.EnglishLevel).where(models.EnglishLevel.name == name)).first()
        if level is None:
            raise NotFound(self.not_found_key)
        return level


class ExpertRepository(_Repository):
    model = models.Expert
    not_found_key = "notFound.expert"

    def find_by_expert_name(self, expert_name: Optional[str]) -> models.Expert:
        expert = self.session.exec(select(models.Expert).where(models.Expert.expert_name == expert_name)).first()
        if expert is None:
            raise NotFound(self.not_found_key)
        return expert


class GroupRepository(_Repository):
    """CRUD and filtered queries for `Group` objects."""
    model = models.Group
    not_found_key = "notFound.group"

    def save(self, group: models.Group) -> models.Group:
        """Insert or update a group.

        The unique constraint on `name` is the last word on duplicates:
        a concurrent insert that slipped past the application check is
        rolled back and reported as a validation failure.
        """
        self.session.add(group)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValidationFailure("group.name.exists") from exc
        self.session.refresh(group)
        return group

    def delete(self, group: models.Group) -> None:
        self.session.delete(group)
        self.session.commit()

    def find_by_name(self, name: Optional[str]) -> Optional[models.Group]:
        """Return the group with exactly this name or `None`."""
        return self.session.exec(select(models.Group).where(models.Group.name == name)).first()

    def find_by_name_or_raise(self, name: Optional[str]) -> models.Group:
        group = self.find_by_name(name)
        if group is None:
            raise NotFound(self.not_found_key)
        return group

    def find_by_location_ids(self, location_ids: Iterable[int]) -> List[models.Group]:
        stmt = select(models.Group).where(filters.group_by_location_ids(location_ids)).order_by(models.Group.id)
        return self.session.exec(stmt).all()

    def find_by_teacher(self, teacher_id: int) -> List[models.Group]:
        stmt = select(models.Group).where(
            models.Group.teachers.any(models.User.id == teacher_id)
        ).order_by(models.Group.id)
        return self.session.exec(stmt).all()

    def find_by_filter(self, groups_filter: GroupsFilter) -> List[models.Group]:
        stmt = select(models.Group).where(*filters.group_filter(groups_filter)).order_by(models.Group.id)
        return self.session.exec(stmt).all()


class StudentRepository(_Repository):
    model = models.Student
    not_found_key = "notFound.student"

    def save(self, student: models.Student) -> models.Student:
        self.session.add(student)
        self.session.commit()
        self.session.refresh(student)
        return student

    def save_all(self, students: List[models.Student]) -> List[models.Student]:
        """Persist a batch of students in a single commit."""
        self.session.add_all(students)
        self.session.commit()
        for s in students:
            self.session.refresh(s)
        return students

    def delete(self, student: models.Student) -> None:
        self.session.delete(student)
        self.session.commit()

    def get_students_by_group_id(self, group_id: int) -> List[models.Student]:
        stmt = select(models.Student).where(models.Student.group_id == group_id).order_by(models.Student.id)
        return self.session.exec(stmt).all()


class EventRepository(_Repository):
    """Key-date and date-range queries over group events."""
    model = models.Event

    def get_key_events_by_group_ids(self, group_ids: Iterable[int]) -> List[models.Event]:
        stmt = select(models.Event).where(
            filters.key_dates(),
            filters.event_by_group_ids(group_ids),
        ).order_by(models.Event.date_time)
        return self.session.exec(stmt).all()

    def get_events_by_group_ids(self, group_ids: Iterable[int], start: datetime, finish: datetime) -> List[models.Event]:
        stmt = select(models.Event).where(
            filters.event_by_group_ids(group_ids),
            filters.event_between_dates(start, finish),
        ).order_by(models.Event.date_time)
        return self.session.exec(stmt).all()

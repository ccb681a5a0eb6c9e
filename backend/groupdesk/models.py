"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Name columns that must be unique across the system (groups, locations,
statuses, users) carry a database unique constraint.
"""

import enum
from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, date, timezone
from typing import List


class Role(str, enum.Enum):
    """Closed set of user roles."""
    TEACHER = "teacher"
    COORDINATOR = "coordinator"
    ADMIN = "admin"


class GroupTeacherLink(SQLModel, table=True):
    """Association between a group and the teachers assigned to it."""
    group_id: Optional[int] = Field(default=None, foreign_key='groups.id', primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key='user.id', primary_key=True)


class Location(SQLModel, table=True):
    """A physical site owning groups and users.

    The coordinator of a location is the user assigned to it with the
    coordinator role (see `LocationRepository.find_coordinator`).
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, nullable=False, unique=True)
    groups: List['Group'] = Relationship(back_populates='location')
    users: List['User'] = Relationship(back_populates='location')


class User(SQLModel, table=True):
    """A staff member able to log in.

    Fields:
    - `username`: unique login name, used as the request principal
    - `password_hash`: hashed password string (never store plaintext)
    - `location_id`: site the user works at; admins have none
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role = Field(default=Role.TEACHER, index=True)
    location_id: Optional[int] = Field(default=None, foreign_key='location.id')
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    location: Optional[Location] = Relationship(back_populates='users')
    groups: List['Group'] = Relationship(back_populates='teachers', link_model=GroupTeacherLink)


class Status(SQLModel, table=True):
    """Lifecycle stage of a group (planned, in progress, graduated...)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, unique=True)


class Group(SQLModel, table=True):
    """A cohort of students taught at a location."""
    __tablename__ = 'groups'

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, nullable=False, unique=True)
    location_id: int = Field(foreign_key='location.id')
    status_id: int = Field(foreign_key='status.id')
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    location: Optional[Location] = Relationship(back_populates='groups')
    status: Optional[Status] = Relationship()
    teachers: List[User] = Relationship(back_populates='groups', link_model=GroupTeacherLink)
    students: List['Student'] = Relationship(back_populates='group')
    events: List['Event'] = Relationship(
        back_populates='group',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan'},
    )


class EnglishLevel(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, unique=True)


class Expert(SQLModel, table=True):
    """Person who approved a student's entry test."""
    id: Optional[int] = Field(default=None, primary_key=True)
    expert_name: str = Field(nullable=False, unique=True)


class Student(SQLModel, table=True):
    """A student enrolled in exactly one group.

    `english_level_id` and `expert_id` are nullable at the column level
    so an incomplete payload can be held in memory and rejected by the
    service with a specific message instead of a constraint error.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key='groups.id', index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    english_level_id: Optional[int] = Field(default=None, foreign_key='englishlevel.id')
    expert_id: Optional[int] = Field(default=None, foreign_key='expert.id')
    entry_score: Optional[float] = None
    incoming_test: Optional[bool] = None
    group: Optional[Group] = Relationship(back_populates='students')
    english_level: Optional[EnglishLevel] = Relationship()
    test_approved_by_expert: Optional[Expert] = Relationship()


class EventType(SQLModel, table=True):
    """Kind of event; key dates are the schedule-significant ones."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, unique=True)
    is_key_date: bool = False


class Event(SQLModel, table=True):
    """A dated occurrence tied to a group."""
    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key='groups.id', index=True)
    event_type_id: int = Field(foreign_key='eventtype.id')
    date_time: datetime = Field(index=True)
    group: Optional[Group] = Relationship(back_populates='events')
    event_type: Optional[EventType] = Relationship()

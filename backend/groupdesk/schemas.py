"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable. Response resources are
assembled from SQLModel rows through their `from_*` constructors and
carry a small `links` map pointing at related endpoints.

Dates travel as `yyyy-MM-dd` text, event timestamps as
`yyyy-MM-ddTHH:MM:SS`.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, field_serializer

from . import models

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class GroupPayload(BaseModel):
    """Group body for create (POST) and partial update (PUT).

    Every field is optional: on update, unset fields are filled from the
    stored group by `GroupValidator.fields_check`.
    """
    id: Optional[int] = None
    name: Optional[str] = None
    location_id: Optional[int] = None
    status_id: Optional[int] = None
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    teacher_ids: Optional[List[int]] = None


class GroupsFilter(BaseModel):
    """Criteria for `POST /groups/filter`; empty lists do not constrain."""
    locations: List[int] = []
    statuses: List[int] = []
    teachers: List[int] = []


class GroupResource(BaseModel):
    id: int
    name: str
    location_id: int
    location: Optional[str] = None
    status_id: int
    status: Optional[str] = None
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    teachers: List[str] = []
    students_count: int = 0
    links: Dict[str, str] = {}

    @field_serializer("start_date", "finish_date")
    def _format_date(self, value: Optional[date]) -> Optional[str]:
        return value.strftime(DATE_FORMAT) if value else None

    @classmethod
    def from_group(cls, group: models.Group) -> "GroupResource":
        return cls(
            id=group.id,
            name=group.name,
            location_id=group.location_id,
            location=group.location.name if group.location else None,
            status_id=group.status_id,
            status=group.status.name if group.status else None,
            start_date=group.start_date,
            finish_date=group.finish_date,
            teachers=sorted(t.username for t in group.teachers),
            students_count=len(group.students),
            links={
                "self": f"/groups/{group.id}",
                "students": f"/groups/{group.id}/students",
                "events": f"/groups/{group.id}/events",
            },
        )


class StudentPayload(BaseModel):
    """Student body for add/update.

    Mandatory fields are still optional here so the service can report
    exactly which one is missing.
    """
    id: Optional[int] = None
    group_id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    english_level_id: Optional[int] = None
    expert_id: Optional[int] = None
    entry_score: Optional[float] = None
    incoming_test: Optional[bool] = None

    def to_model(self) -> models.Student:
        return models.Student(**self.model_dump())


class StudentResource(BaseModel):
    id: int
    group_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    english_level: Optional[str] = None
    expert: Optional[str] = None
    entry_score: Optional[float] = None
    incoming_test: Optional[bool] = None
    links: Dict[str, str] = {}

    @classmethod
    def from_student(cls, student: models.Student) -> "StudentResource":
        return cls(
            id=student.id,
            group_id=student.group_id,
            first_name=student.first_name,
            last_name=student.last_name,
            english_level=student.english_level.name if student.english_level else None,
            expert=student.test_approved_by_expert.expert_name if student.test_approved_by_expert else None,
            entry_score=student.entry_score,
            incoming_test=student.incoming_test,
            links={
                "self": f"/students/{student.id}",
                "group": f"/groups/{student.group_id}",
            },
        )


class StudentDto(BaseModel):
    """Flat student view referencing group, expert and level by name."""
    id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    group: Optional[str] = None
    english_level: Optional[str] = None
    expert: Optional[str] = None
    entry_score: Optional[float] = None
    incoming_test: Optional[bool] = None

    @classmethod
    def from_student(cls, student: models.Student) -> "StudentDto":
        return cls(
            id=student.id,
            first_name=student.first_name,
            last_name=student.last_name,
            group=student.group.name if student.group else None,
            english_level=student.english_level.name if student.english_level else None,
            expert=student.test_approved_by_expert.expert_name if student.test_approved_by_expert else None,
            entry_score=student.entry_score,
            incoming_test=student.incoming_test,
        )


class EditStudentDto(StudentDto):
    """Edit form model: the student slot plus candidate values."""
    groups: List[str] = []
    experts: List[str] = []
    english_levels: List[str] = []


class EventResource(BaseModel):
    id: int
    group_id: int
    event_type: Optional[str] = None
    is_key_date: bool = False
    date_time: datetime
    links: Dict[str, str] = {}

    @field_serializer("date_time")
    def _format_datetime(self, value: datetime) -> str:
        return value.strftime(DATETIME_FORMAT)

    @classmethod
    def from_event(cls, event: models.Event) -> "EventResource":
        return cls(
            id=event.id,
            group_id=event.group_id,
            event_type=event.event_type.name if event.event_type else None,
            is_key_date=bool(event.event_type and event.event_type.is_key_date),
            date_time=event.date_time,
            links={"group": f"/groups/{event.group_id}"},
        )


class LocationResource(BaseModel):
    id: int
    name: str
    coordinator: Optional[str] = None

"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and validators. Each state-changing operation first resolves the acting
user, checks the role with `require_role`, runs the relevant validator
gate and only then persists through a repository. Services never catch
the errors raised by validators; they reach the HTTP layer unchanged.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .exceptions import AccessDenied, ValidationFailure
from .schemas import (
    EditStudentDto,
    EventResource,
    GroupPayload,
    GroupResource,
    GroupsFilter,
    LocationResource,
    StudentDto,
    StudentResource,
)
from .validators import GroupValidator, StudentValidator, same_location

logger = logging.getLogger("groupdesk.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

NEW_STUDENT_ID = -1


def require_role(user: models.User, *roles: models.Role) -> None:
    """Refuse the operation unless the user holds one of `roles`."""
    if user.role not in roles:
        logger.warning("role %s refused, expected one of %s", user.role.value, [r.value for r in roles])
        raise AccessDenied("auth.role")


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str, role: models.Role = models.Role.TEACHER,
                 location_id: Optional[int] = None, first_name: Optional[str] = None,
                 last_name: Optional[str] = None) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        hashed = PWD_CTX.hash(password)
        u = models.User(
            username=username,
            password_hash=hashed,
            role=role,
            location_id=location_id,
            first_name=first_name,
            last_name=last_name,
        )
        return self.user_repo.create(u)

    def authenticate(self, username: str, password: str):
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "role": user.role.value, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class _TeacherResolver:
    """Shared lookup of teacher users by id."""
    user_repo: repositories.UserRepository

    def _resolve_teachers(self, teacher_ids: List[int]) -> List[models.User]:
        teachers = []
        for teacher_id in dict.fromkeys(teacher_ids):
            teacher = self.user_repo.get_or_raise(teacher_id)
            if teacher.role != models.Role.TEACHER:
                raise ValidationFailure("group.teacher.notTeacher")
            teachers.append(teacher)
        return teachers


class GroupService(_TeacherResolver):
    """Create, read, update and delete groups."""
    def __init__(self, session: Session):
        self.session = session
        self.group_repo = repositories.GroupRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.location_repo = repositories.LocationRepository(session)
        self.status_repo = repositories.StatusRepository(session)
        self.validator = GroupValidator(session)

    def get_all_groups(self) -> List[models.Group]:
        return self.group_repo.find_all()

    def get_all_group_resources(self) -> List[GroupResource]:
        return [GroupResource.from_group(g) for g in self.get_all_groups()]

    def get_groups_by_location_ids(self, location_ids: List[int]) -> List[models.Group]:
        return self.group_repo.find_by_location_ids(location_ids)

    def get_group_resources_from_user_location(self, user_name: str) -> List[GroupResource]:
        """Groups at the user's location; empty for users without one."""
        user = self.user_repo.get_by_username_or_raise(user_name)
        if user.location_id is None:
            return []
        groups = self.get_groups_by_location_ids([user.location_id])
        return [GroupResource.from_group(g) for g in groups]

    def get_group_resource_by_id(self, group_id: int) -> GroupResource:
        return GroupResource.from_group(self.group_repo.get_or_raise(group_id))

    def get_groups_by_filter(self, groups_filter: GroupsFilter) -> List[GroupResource]:
        return [GroupResource.from_group(g) for g in self.group_repo.find_by_filter(groups_filter)]

    def add_group(self, group: GroupPayload, user_name: str) -> GroupResource:
        """Create a group on behalf of `user_name`.

        The location defaults to the creator's own. A teacher creating a
        group is assigned to it. The name must not be taken.
        """
        user = self.user_repo.get_by_username_or_raise(user_name)
        require_role(user, models.Role.TEACHER, models.Role.COORDINATOR, models.Role.ADMIN)
        if not group.name:
            raise ValidationFailure("illegalArgs.group.name")
        if group.location_id is None:
            group.location_id = user.location_id
        if group.location_id is None:
            raise ValidationFailure("illegalArgs.group.location")
        if group.status_id is None:
            raise ValidationFailure("illegalArgs.group.status")
        location = self.location_repo.get_or_raise(group.location_id)
        status = self.status_repo.get_or_raise(group.status_id)
        self.validator.check_coordinator_location(user, location)
        if user.role == models.Role.TEACHER and not same_location(user, location):
            raise AccessDenied("auth.group.edit.teacher.alienLocation")
        if not self.validator.is_valid(group):
            raise ValidationFailure("group.name.exists")
        teachers = self._resolve_teachers(group.teacher_ids or [])
        if user.role == models.Role.TEACHER and all(t.id != user.id for t in teachers):
            teachers.append(user)

        new_group = models.Group(
            name=group.name,
            location_id=location.id,
            status_id=status.id,
            start_date=group.start_date,
            finish_date=group.finish_date,
        )
        self.session.add(new_group)
        new_group.teachers = teachers
        new_group = self.group_repo.save(new_group)
        logger.info("group created id=%s name=%s by=%s", new_group.id, new_group.name, user_name)
        return GroupResource.from_group(new_group)

    def update_group(self, group: GroupPayload, status_id: Optional[int], user_name: str) -> GroupResource:
        """Apply a completed payload (see `GroupValidator.fields_check`).

        Permissions are decided on the stored group and its current
        status. Moving the group to another location is additionally
        checked against the target location. Nothing is changed until
        every check has passed.
        """
        user = self.user_repo.get_by_username_or_raise(user_name)
        existing = self.group_repo.get_or_raise(group.id)
        self.validator.check_group_edit_permissions(user, existing, existing.status)
        if not group.name:
            raise ValidationFailure("illegalArgs.group.name")

        location_id = existing.location_id
        if group.location_id is not None and group.location_id != existing.location_id:
            target = self.location_repo.get_or_raise(group.location_id)
            self.validator.check_coordinator_location(user, target)
            if user.role == models.Role.TEACHER and not same_location(user, target):
                raise AccessDenied("auth.group.edit.teacher.alienLocation")
            location_id = target.id
        if status_id is None:
            status_id = existing.status_id
        status_id = self.status_repo.get_or_raise(status_id).id
        if not self.validator.is_valid_group_name(group):
            raise ValidationFailure("group.name.exists")
        teachers = self._resolve_teachers(group.teacher_ids) if group.teacher_ids is not None else None

        existing.name = group.name
        existing.location_id = location_id
        existing.status_id = status_id
        existing.start_date = group.start_date
        existing.finish_date = group.finish_date
        if teachers is not None:
            existing.teachers = teachers
        existing = self.group_repo.save(existing)
        logger.info("group updated id=%s by=%s", existing.id, user_name)
        return GroupResource.from_group(existing)

    def delete_group(self, group_id: int, user_name: str) -> None:
        """Delete a group that no longer has students; its events go with it."""
        user = self.user_repo.get_by_username_or_raise(user_name)
        require_role(user, models.Role.COORDINATOR, models.Role.ADMIN)
        group = self.group_repo.get_or_raise(group_id)
        self.validator.check_coordinator_location_to_manipulate_group(user, group)
        if group.students:
            raise ValidationFailure("group.delete.hasStudents")
        self.group_repo.delete(group)
        logger.info("group deleted id=%s by=%s", group_id, user_name)


class TeacherGroupsManipulationService(_TeacherResolver):
    """Groups seen from the teacher side: listing and (un)assignment."""
    def __init__(self, session: Session):
        self.session = session
        self.group_repo = repositories.GroupRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.validator = GroupValidator(session)

    def get_all_groups_of_the_teacher(self, user_name: str) -> List[models.Group]:
        user = self.user_repo.get_by_username_or_raise(user_name)
        require_role(user, models.Role.TEACHER)
        return self.group_repo.find_by_teacher(user.id)

    def get_all_group_resources_of_the_teacher(self, user_name: str) -> List[GroupResource]:
        return [GroupResource.from_group(g) for g in self.get_all_groups_of_the_teacher(user_name)]

    def _load_for_manipulation(self, group_id: int, user_name: str) -> models.Group:
        user = self.user_repo.get_by_username_or_raise(user_name)
        require_role(user, models.Role.COORDINATOR, models.Role.ADMIN)
        group = self.group_repo.get_or_raise(group_id)
        self.validator.check_coordinator_location_to_manipulate_group(user, group)
        return group

    def assign_teacher(self, group_id: int, teacher_id: int, user_name: str) -> GroupResource:
        group = self._load_for_manipulation(group_id, user_name)
        teacher = self._resolve_teachers([teacher_id])[0]
        if all(t.id != teacher.id for t in group.teachers):
            group.teachers.append(teacher)
            group = self.group_repo.save(group)
            logger.info("teacher %s assigned to group %s by=%s", teacher.username, group.id, user_name)
        return GroupResource.from_group(group)

    def unassign_teacher(self, group_id: int, teacher_id: int, user_name: str) -> GroupResource:
        group = self._load_for_manipulation(group_id, user_name)
        remaining = [t for t in group.teachers if t.id != teacher_id]
        if len(remaining) != len(group.teachers):
            group.teachers = remaining
            group = self.group_repo.save(group)
            logger.info("teacher %s unassigned from group %s by=%s", teacher_id, group.id, user_name)
        return GroupResource.from_group(group)


class StudentService:
    """Add, update, list and remove students of groups."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.group_repo = repositories.GroupRepository(session)
        self.english_level_repo = repositories.EnglishLevelRepository(session)
        self.expert_repo = repositories.ExpertRepository(session)
        self.validator = StudentValidator(session)

    def get_students_by_group_id(self, group_id: int) -> List[StudentResource]:
        self.group_repo.get_or_raise(group_id)
        return [StudentResource.from_student(s) for s in self.student_repo.get_students_by_group_id(group_id)]

    def get_all_students(self) -> List[StudentResource]:
        return [StudentResource.from_student(s) for s in self.student_repo.find_all()]

    def get_student_resource_by_id(self, student_id: int) -> StudentResource:
        return StudentResource.from_student(self.student_repo.get_or_raise(student_id))

    def _check_required_fields(self, student: models.Student) -> None:
        if student.first_name is None:
            raise ValidationFailure("illegalArgs.student.firstName")
        if student.last_name is None:
            raise ValidationFailure("illegalArgs.student.lastName")
        if student.english_level_id is None:
            raise ValidationFailure("illegalArgs.student.englishLevel")
        if student.expert_id is None:
            raise ValidationFailure("illegalArgs.student.expert")

    def add_students(self, students: List[models.Student], group_id: int, user_name: str) -> List[StudentResource]:
        """Add a batch of students to a group.

        Every student is checked before anything is written: the first
        missing mandatory field (first name, last name, English level,
        expert, in that order) or unknown reference rejects the whole
        batch. The batch is then stored in one commit.
        """
        group = self.group_repo.get_or_raise(group_id)
        self.validator.check_coordinator_location_to_manipulate_student(group, user_name)
        for student in students:
            student.group_id = group.id
            self._check_required_fields(student)
            self.english_level_repo.get_or_raise(student.english_level_id)
            self.expert_repo.get_or_raise(student.expert_id)
        saved = self.student_repo.save_all(students)
        logger.info("students added count=%d group=%s by=%s", len(saved), group.id, user_name)
        return [StudentResource.from_student(s) for s in saved]

    def update_single_student(self, student: models.Student, user_name: str) -> models.Student:
        """Update one student, authorizing against the group it is stored in.

        The group in the payload is never trusted for authorization; if
        it differs from the stored one the move is checked against the
        target group as well. Set fields overwrite the stored ones.
        """
        stored = self.student_repo.get_or_raise(student.id)
        self.validator.check_coordinator_location_to_manipulate_student(stored.group, user_name)
        group_id = stored.group_id
        if student.group_id is not None and student.group_id != stored.group_id:
            target = self.group_repo.get_or_raise(student.group_id)
            self.validator.check_coordinator_location_to_manipulate_student(target, user_name)
            group_id = target.id
        if student.english_level_id is not None:
            self.english_level_repo.get_or_raise(student.english_level_id)
        if student.expert_id is not None:
            self.expert_repo.get_or_raise(student.expert_id)

        stored.group_id = group_id
        if student.first_name is not None:
            stored.first_name = student.first_name
        if student.last_name is not None:
            stored.last_name = student.last_name
        if student.english_level_id is not None:
            stored.english_level_id = student.english_level_id
        if student.expert_id is not None:
            stored.expert_id = student.expert_id
        if student.entry_score is not None:
            stored.entry_score = student.entry_score
        if student.incoming_test is not None:
            stored.incoming_test = student.incoming_test
        stored = self.student_repo.save(stored)
        logger.info("student updated id=%s by=%s", stored.id, user_name)
        return stored

    def update_students(self, students: List[models.Student], user_name: str) -> List[StudentResource]:
        return [StudentResource.from_student(self.update_single_student(s, user_name)) for s in students]

    def get_all_student_dto(self) -> List[StudentDto]:
        return [StudentDto.from_student(s) for s in self.student_repo.find_all()]

    def find_student_to_edit(self, student_id: int) -> EditStudentDto:
        """Build the edit form for a student, or an empty one for `-1`.

        Candidate groups, experts and English levels are attached on both
        paths.
        """
        english_levels = [level.name for level in self.english_level_repo.find_all()]
        experts = [expert.expert_name for expert in self.expert_repo.find_all()]
        groups = [group.name for group in self.group_repo.find_all()]
        if student_id == NEW_STUDENT_ID:
            dto = EditStudentDto()
        else:
            student = self.student_repo.get_or_raise(student_id)
            dto = EditStudentDto(**StudentDto.from_student(student).model_dump())
        dto.groups = groups
        dto.experts = experts
        dto.english_levels = english_levels
        return dto

    def save_student(self, dto: StudentDto, user_name: str) -> StudentDto:
        """Create or overwrite a student from its flat, name-based form.

        Missing mandatory fields are reported before any name is
        resolved; only a name that is given but unknown is `NotFound`.
        """
        if dto.first_name is None:
            raise ValidationFailure("illegalArgs.student.firstName")
        if dto.last_name is None:
            raise ValidationFailure("illegalArgs.student.lastName")
        if dto.english_level is None:
            raise ValidationFailure("illegalArgs.student.englishLevel")
        if dto.expert is None:
            raise ValidationFailure("illegalArgs.student.expert")
        group = self.group_repo.find_by_name_or_raise(dto.group)
        expert = self.expert_repo.find_by_expert_name(dto.expert)
        english_level = self.english_level_repo.find_by_name(dto.english_level)
        self.validator.check_coordinator_location_to_manipulate_student(group, user_name)
        candidate = models.Student(
            group_id=group.id,
            first_name=dto.first_name,
            last_name=dto.last_name,
            english_level_id=english_level.id,
            expert_id=expert.id,
            entry_score=dto.entry_score,
            incoming_test=dto.incoming_test,
        )
        if dto.id is None:
            student = candidate
        else:
            student = self.student_repo.get_or_raise(dto.id)
            self.validator.check_coordinator_location_to_manipulate_student(student.group, user_name)
            student.group_id = candidate.group_id
            student.first_name = candidate.first_name
            student.last_name = candidate.last_name
            student.english_level_id = candidate.english_level_id
            student.expert_id = candidate.expert_id
            student.entry_score = candidate.entry_score
            student.incoming_test = candidate.incoming_test
        student = self.student_repo.save(student)
        logger.info("student saved id=%s by=%s", student.id, user_name)
        return StudentDto.from_student(student)

    def delete_student(self, student_id: int, user_name: str) -> None:
        student = self.student_repo.get_or_raise(student_id)
        self.validator.check_coordinator_location_to_manipulate_student(student.group, user_name)
        self.student_repo.delete(student)
        logger.info("student deleted id=%s by=%s", student_id, user_name)


class EventService:
    """Key-date and date-range event queries for one or more groups."""
    def __init__(self, session: Session):
        self.session = session
        self.event_repo = repositories.EventRepository(session)
        self.group_repo = repositories.GroupRepository(session)

    def get_key_events(self, group_ids: List[int]) -> List[EventResource]:
        return [EventResource.from_event(e) for e in self.event_repo.get_key_events_by_group_ids(group_ids)]

    def get_events(self, group_ids: List[int], start: datetime, finish: datetime) -> List[EventResource]:
        if start > finish:
            raise ValidationFailure("illegalArgs.event.range")
        return [EventResource.from_event(e) for e in self.event_repo.get_events_by_group_ids(group_ids, start, finish)]

    def get_key_events_by_group_id(self, group_id: int) -> List[EventResource]:
        self.group_repo.get_or_raise(group_id)
        return self.get_key_events([group_id])

    def get_events_by_group_id(self, group_id: int, start: datetime, finish: datetime) -> List[EventResource]:
        self.group_repo.get_or_raise(group_id)
        return self.get_events([group_id], start, finish)


class LocationService:
    def __init__(self, session: Session):
        self.session = session
        self.location_repo = repositories.LocationRepository(session)

    def get_all_locations(self) -> List[LocationResource]:
        out = []
        for location in self.location_repo.find_all():
            coordinator = self.location_repo.find_coordinator(location.id)
            out.append(LocationResource(
                id=location.id,
                name=location.name,
                coordinator=coordinator.username if coordinator else None,
            ))
        return out

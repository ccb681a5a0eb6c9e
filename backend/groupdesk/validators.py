"""Authorization and business-rule checks for groups and students.

Validators only read from the database. They either return a boolean
(name uniqueness) or raise `AccessDenied` with a message key describing
which rule refused the operation. Location equality is by name.
"""

import logging
from typing import Optional

from sqlmodel import Session

from . import models, repositories
from .exceptions import AccessDenied
from .schemas import GroupPayload

logger = logging.getLogger("groupdesk.validators")

GRADUATED = "graduated"


def _location_name(location: Optional[models.Location]) -> Optional[str]:
    return location.name if location is not None else None


def same_location(user: models.User, location: Optional[models.Location]) -> bool:
    """True when the user works at `location`; users without one never match."""
    user_location = _location_name(user.location)
    return user_location is not None and user_location == _location_name(location)


def is_assigned(user: models.User, group: models.Group) -> bool:
    return any(t.id == user.id for t in group.teachers)


def _deny(key: str, user: models.User, group: Optional[models.Group] = None) -> None:
    logger.warning(
        "access denied key=%s user=%s role=%s group=%s",
        key, user.username, user.role.value, group.id if group is not None else None,
    )
    raise AccessDenied(key)


def merge_group_payload(incoming: GroupPayload, existing: models.Group) -> GroupPayload:
    """Fill every unset field of `incoming` from the stored group, in place."""
    if incoming.name is None:
        incoming.name = existing.name
    if incoming.location_id is None:
        incoming.location_id = existing.location_id
    if incoming.status_id is None:
        incoming.status_id = existing.status_id
    if incoming.start_date is None:
        incoming.start_date = existing.start_date
    if incoming.finish_date is None:
        incoming.finish_date = existing.finish_date
    if incoming.teacher_ids is None:
        incoming.teacher_ids = [t.id for t in existing.teachers]
    return incoming


class GroupValidator:
    """Permission gate and field completion for group create/update/delete."""

    def __init__(self, session: Session):
        self.session = session
        self.group_repo = repositories.GroupRepository(session)

    def fields_check(self, group: GroupPayload) -> GroupPayload:
        """Complete a partial PUT payload from the stored group with the same id.

        Clients may omit unchanged fields; after this call every field
        holds either the value sent or the stored one. Raises `NotFound`
        when no group has `group.id`.
        """
        existing = self.group_repo.get_or_raise(group.id)
        return merge_group_payload(group, existing)

    def is_valid(self, group: GroupPayload) -> bool:
        """A new group is valid when no stored group has its name."""
        return self.group_repo.find_by_name(group.name) is None

    def is_valid_group_name(self, group: GroupPayload) -> bool:
        """On update the name must be free or already belong to this group."""
        current = self.group_repo.find_by_name(group.name)
        return current is None or current.name != group.name or current.id == group.id

    def check_coordinator_location(self, user: models.User, location: Optional[models.Location]) -> None:
        """Coordinators may only act on their own location; other roles pass."""
        if user.role == models.Role.COORDINATOR and not same_location(user, location):
            _deny("auth.group.delete.coordinator", user)

    def check_coordinator_location_to_manipulate_group(self, user: models.User, group: models.Group) -> None:
        if user.role == models.Role.COORDINATOR and not same_location(user, group.location):
            _deny("auth.group.delete.coordinator", user, group)

    def check_group_edit_permissions(self, user: models.User, group: models.Group, current_status: models.Status) -> None:
        """Decide whether `user` may edit `group` in its current status.

        Teachers must be assigned to the group, work at its location and
        the group must not be graduated. Coordinators must share the
        group's location. Admins are always allowed.
        """
        if user.role == models.Role.TEACHER:
            assigned = is_assigned(user, group)
            if assigned and not same_location(user, group.location):
                _deny("auth.group.edit.teacher.alienLocation", user, group)
            elif not assigned:
                _deny("auth.group.edit.teacher.notAssigned", user, group)
            elif current_status.name.lower() == GRADUATED:
                _deny("auth.group.edit.teacher.groupGraduated", user, group)
        elif user.role == models.Role.COORDINATOR:
            if not same_location(user, group.location):
                _deny("auth.group.edit.coordinator.alienLocation", user, group)


class StudentValidator:
    """Location gate for adding, updating and removing students."""

    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def check_coordinator_location_to_manipulate_student(self, group: models.Group, user_name: str) -> None:
        user = self.user_repo.get_by_username_or_raise(user_name)
        if user.role == models.Role.COORDINATOR and not same_location(user, group.location):
            _deny("auth.student.coordinator", user, group)

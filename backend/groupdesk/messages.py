"""Human readable messages addressed by key.

Validators and services raise errors with a stable message key; the
text shown to clients is looked up here. Unknown keys resolve to the
key itself so a missing entry never hides an error.
"""

MESSAGES = {
    # authorization
    "auth.role": "Your role is not allowed to perform this action",
    "auth.group.delete.coordinator": "Coordinator can manipulate only groups of their own location",
    "auth.group.edit.teacher.alienLocation": "Teacher cannot edit a group located outside their location",
    "auth.group.edit.teacher.notAssigned": "Teacher cannot edit a group they are not assigned to",
    "auth.group.edit.teacher.groupGraduated": "Teacher cannot edit a graduated group",
    "auth.group.edit.coordinator.alienLocation": "Coordinator cannot edit a group of another location",
    "auth.student.coordinator": "Coordinator can manipulate only students of their own location",
    # validation
    "group.name.exists": "Group with this name already exists",
    "group.delete.hasStudents": "Group still has students and cannot be deleted",
    "group.teacher.notTeacher": "Only users with the teacher role can be assigned to a group",
    "illegalArgs.group.name": "Group name is required",
    "illegalArgs.group.location": "Group location is required",
    "illegalArgs.group.status": "Group status is required",
    "illegalArgs.student.firstName": "Student first name is required",
    "illegalArgs.student.lastName": "Student last name is required",
    "illegalArgs.student.englishLevel": "Student English level is required",
    "illegalArgs.student.expert": "Expert who approved the student's test is required",
    "illegalArgs.event.range": "Event range start must not be after its finish",
    # lookups
    "notFound.group": "Group not found",
    "notFound.student": "Student not found",
    "notFound.user": "User not found",
    "notFound.location": "Location not found",
    "notFound.status": "Status not found",
    "notFound.englishLevel": "English level not found",
    "notFound.expert": "Expert not found",
}


def get_message(key: str) -> str:
    """Return the message text for `key`, or the key when unknown."""
    return MESSAGES.get(key, key)

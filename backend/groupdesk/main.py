"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the group management backend.
Controllers are intentionally thin: they extract the authenticated
principal, delegate to services and return JSON responses. Errors
raised by services are mapped to status codes by a single exception
handler.

Endpoints implemented:
- POST /auth/login
- GET /groups/my, /groups/mylocation, /groups, /groups/{id}
- POST /groups, /groups/filter
- PUT /groups/{id}, DELETE /groups/{id}
- PUT/DELETE /groups/{id}/teachers/{teacher_id}
- GET/POST /groups/{id}/students
- GET /groups/{id}/events, /groups/{id}/events/key, /events, /events/key
- GET/PUT /students, GET/PUT/DELETE /students/{id}, GET /students/{id}/edit
- GET/POST /students/dto
- GET /locations
"""

from datetime import datetime
from typing import List

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import models, services
from .auth import get_current_user
from .config import settings
from .exceptions import GroupDeskError
from .schemas import (
    EditStudentDto,
    EventResource,
    GroupPayload,
    GroupResource,
    GroupsFilter,
    LocationResource,
    LoginIn,
    StudentDto,
    StudentPayload,
    StudentResource,
    TokenOut,
)
from .validators import GroupValidator

app = FastAPI(title="Group Management API")
logger = logging.getLogger("groupdesk.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# Wide-open CORS keeps local frontends working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    context["status_code"] = response.status_code
    context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


@app.exception_handler(GroupDeskError)
async def groupdesk_error_handler(request: Request, exc: GroupDeskError):
    """Map the error taxonomy onto HTTP status codes."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "key": exc.key})


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get('/groups/my', response_model=List[GroupResource])
def get_teachers_groups(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Groups the authenticated teacher is assigned to; other roles get 403."""
    return services.TeacherGroupsManipulationService(db).get_all_group_resources_of_the_teacher(user.username)


@app.get('/groups/mylocation', response_model=List[GroupResource])
def get_groups_from_user_location(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db).get_group_resources_from_user_location(user.username)


@app.get('/groups', response_model=List[GroupResource])
def get_all_groups(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db).get_all_group_resources()


@app.post('/groups', response_model=GroupResource)
def create_group(group: GroupPayload, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Create a group. Dates are accepted as `yyyy-MM-dd`."""
    return services.GroupService(db).add_group(group, user.username)


@app.post('/groups/filter', response_model=List[GroupResource])
def get_groups_by_filter(groups_filter: GroupsFilter, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db).get_groups_by_filter(groups_filter)


@app.get('/groups/{group_id}', response_model=GroupResource)
def get_group_by_id(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.GroupService(db).get_group_resource_by_id(group_id)


@app.put('/groups/{group_id}', response_model=GroupResource)
def edit_group(group_id: int, group: GroupPayload, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Partially update a group; omitted fields keep their stored values."""
    group.id = group_id
    GroupValidator(db).fields_check(group)
    return services.GroupService(db).update_group(group, group.status_id, user.username)


@app.delete('/groups/{group_id}', status_code=204)
def delete_group(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.GroupService(db).delete_group(group_id, user.username)
    return Response(status_code=204)


@app.put('/groups/{group_id}/teachers/{teacher_id}', response_model=GroupResource)
def assign_teacher(group_id: int, teacher_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TeacherGroupsManipulationService(db).assign_teacher(group_id, teacher_id, user.username)


@app.delete('/groups/{group_id}/teachers/{teacher_id}', response_model=GroupResource)
def unassign_teacher(group_id: int, teacher_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.TeacherGroupsManipulationService(db).unassign_teacher(group_id, teacher_id, user.username)


@app.get('/groups/{group_id}/students', response_model=List[StudentResource])
def get_students_by_group(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudentService(db).get_students_by_group_id(group_id)


@app.post('/groups/{group_id}/students', response_model=List[StudentResource])
def add_students(group_id: int, students: List[StudentPayload], db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Add a batch of students; the whole batch is rejected on the first invalid one."""
    return services.StudentService(db).add_students([s.to_model() for s in students], group_id, user.username)


@app.get('/groups/{group_id}/events', response_model=List[EventResource])
def get_group_events(group_id: int, start: datetime, finish: datetime, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.EventService(db).get_events_by_group_id(group_id, start, finish)


@app.get('/groups/{group_id}/events/key', response_model=List[EventResource])
def get_group_key_events(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.EventService(db).get_key_events_by_group_id(group_id)


@app.get('/events', response_model=List[EventResource])
def get_events(start: datetime, finish: datetime, groups: List[int] = Query(...), db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.EventService(db).get_events(groups, start, finish)


@app.get('/events/key', response_model=List[EventResource])
def get_key_events(groups: List[int] = Query(...), db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.EventService(db).get_key_events(groups)


@app.get('/students', response_model=List[StudentResource])
def get_all_students(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudentService(db).get_all_students()


@app.put('/students', response_model=List[StudentResource])
def update_students(students: List[StudentPayload], db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudentService(db).update_students([s.to_model() for s in students], user.username)


@app.get('/students/dto', response_model=List[StudentDto])
def get_all_student_dto(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudentService(db).get_all_student_dto()


@app.post('/students/dto', response_model=StudentDto)
def save_student(student: StudentDto, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudentService(db).save_student(student, user.username)


@app.get('/students/{student_id}', response_model=StudentResource)
def get_student(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudentService(db).get_student_resource_by_id(student_id)


@app.put('/students/{student_id}', response_model=StudentResource)
def update_student(student_id: int, student: StudentPayload, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    student.id = student_id
    updated = services.StudentService(db).update_single_student(student.to_model(), user.username)
    return StudentResource.from_student(updated)


@app.delete('/students/{student_id}', status_code=204)
def delete_student(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.StudentService(db).delete_student(student_id, user.username)
    return Response(status_code=204)


@app.get('/students/{student_id}/edit', response_model=EditStudentDto)
def find_student_to_edit(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Edit form data; use id `-1` for a new student."""
    return services.StudentService(db).find_student_to_edit(student_id)


@app.get('/locations', response_model=List[LocationResource])
def get_locations(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.LocationService(db).get_all_locations()


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}

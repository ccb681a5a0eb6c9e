"""CLI script to populate the backend DB with a small demo dataset.
Usage: python scripts/seed_demo.py [--password PASSWORD]

Creates two locations, the group statuses, English levels, experts,
event types, one coordinator per location, two teachers, an admin and a
couple of groups with events. Existing rows (matched by name) are left
untouched so the script can be re-run.
"""
import sys
import argparse
import pathlib
from datetime import date, datetime
# Ensure `backend/` is on sys.path so `groupdesk` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session, select
from groupdesk.database import engine, create_db_and_tables
from groupdesk import models, services

LOCATIONS = ['Dnipro', 'Kyiv']
STATUSES = ['planned', 'in progress', 'graduated']
ENGLISH_LEVELS = ['Elementary', 'Pre-Intermediate', 'Intermediate', 'Upper-Intermediate', 'Advanced']
EXPERTS = ['Anna Expert', 'Oleh Expert']
EVENT_TYPES = [('Lecture', False), ('Demo', True), ('Final exam', True)]


def _get_or_create(session: Session, model, defaults=None, **lookup):
    row = session.exec(select(model).filter_by(**lookup)).first()
    if row:
        return row, False
    row = model(**lookup, **(defaults or {}))
    session.add(row)
    session.commit()
    session.refresh(row)
    return row, True


def main(password: str = 'pass'):
    """Create the demo rows and print what was added."""
    create_db_and_tables()
    with Session(engine) as session:
        locations = {name: _get_or_create(session, models.Location, name=name)[0] for name in LOCATIONS}
        statuses = {name: _get_or_create(session, models.Status, name=name)[0] for name in STATUSES}
        for name in ENGLISH_LEVELS:
            _get_or_create(session, models.EnglishLevel, name=name)
        for name in EXPERTS:
            _get_or_create(session, models.Expert, expert_name=name)
        event_types = {
            name: _get_or_create(session, models.EventType, defaults={'is_key_date': key}, name=name)[0]
            for name, key in EVENT_TYPES
        }

        auth = services.AuthService(session)
        users = [
            ('admin', models.Role.ADMIN, None),
            ('coord_dnipro', models.Role.COORDINATOR, 'Dnipro'),
            ('coord_kyiv', models.Role.COORDINATOR, 'Kyiv'),
            ('teacher_dnipro', models.Role.TEACHER, 'Dnipro'),
            ('teacher_kyiv', models.Role.TEACHER, 'Kyiv'),
        ]
        created_users = 0
        for username, role, location in users:
            if auth.user_repo.get_by_username(username):
                continue
            location_id = locations[location].id if location else None
            auth.register(username, password, role=role, location_id=location_id)
            created_users += 1
        print(f'Users created: {created_users}')

        groups = [
            ('DP-095', 'Dnipro', 'in progress', 'teacher_dnipro'),
            ('DP-090', 'Dnipro', 'graduated', 'teacher_dnipro'),
            ('KV-101', 'Kyiv', 'planned', 'teacher_kyiv'),
        ]
        for name, location, status, teacher in groups:
            group, created = _get_or_create(
                session, models.Group,
                defaults={
                    'location_id': locations[location].id,
                    'status_id': statuses[status].id,
                    'start_date': date(2026, 9, 1),
                    'finish_date': date(2026, 12, 20),
                },
                name=name,
            )
            if not created:
                continue
            group.teachers = [auth.user_repo.get_by_username(teacher)]
            session.add(group)
            session.add(models.Event(group_id=group.id, event_type_id=event_types['Lecture'].id, date_time=datetime(2026, 9, 1, 10)))
            session.add(models.Event(group_id=group.id, event_type_id=event_types['Demo'].id, date_time=datetime(2026, 10, 15, 16)))
            session.add(models.Event(group_id=group.id, event_type_id=event_types['Final exam'].id, date_time=datetime(2026, 12, 18, 12)))
            session.commit()
            print(f'Group created: {name} ({location}, {status})')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--password', default='pass', help='Password given to every demo user')
    args = parser.parse_args()
    main(password=args.password)

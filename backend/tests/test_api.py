def test_login_and_invalid_credentials(client, seeded):
    r = client.post('/auth/login', json={'username': 'coord_dnipro', 'password': 'pass'})
    assert r.status_code == 200
    assert 'access_token' in r.json()
    r2 = client.post('/auth/login', json={'username': 'coord_dnipro', 'password': 'wrong'})
    assert r2.status_code == 401


def test_protected_endpoints_need_token(client, seeded):
    r = client.get('/groups')
    assert r.status_code == 403 or r.status_code == 401
    r2 = client.get('/groups', headers={'Authorization': 'Bearer not-a-jwt'})
    assert r2.status_code == 401


def test_request_id_is_echoed(client, seeded):
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert r.headers['X-Request-ID'] == 'abc123'


def test_groups_listing(client, seeded, login):
    r = client.get('/groups', headers=login('admin'))
    assert r.status_code == 200
    body = r.json()
    assert [g['name'] for g in body] == ['DP-095', 'DP-090', 'KV-101']
    assert body[0]['start_date'] == '2026-09-01'
    assert body[0]['students_count'] == 1
    assert body[0]['links']['students'] == f"/groups/{body[0]['id']}/students"


def test_my_groups_is_teacher_only(client, seeded, login):
    r = client.get('/groups/my', headers=login('teacher_kyiv'))
    assert r.status_code == 200
    assert [g['name'] for g in r.json()] == ['KV-101']
    r2 = client.get('/groups/my', headers=login('coord_kyiv'))
    assert r2.status_code == 403
    assert r2.json()['key'] == 'auth.role'


def test_my_location_groups(client, seeded, login):
    r = client.get('/groups/mylocation', headers=login('coord_dnipro'))
    assert [g['name'] for g in r.json()] == ['DP-095', 'DP-090']
    r2 = client.get('/groups/mylocation', headers=login('admin'))
    assert r2.json() == []


def test_create_group(client, seeded, login):
    planned_id = seeded.planned.id
    r = client.post('/groups', headers=login('coord_kyiv'), json={
        'name': 'KV-102', 'status_id': planned_id, 'start_date': '2027-02-01', 'finish_date': '2027-06-30',
    })
    assert r.status_code == 200
    body = r.json()
    assert body['location'] == 'Kyiv'
    assert body['start_date'] == '2027-02-01'
    r2 = client.post('/groups', headers=login('coord_kyiv'), json={'name': 'KV-102', 'status_id': planned_id})
    assert r2.status_code == 400
    assert r2.json()['key'] == 'group.name.exists'


def test_partial_update_keeps_omitted_fields(client, seeded, login):
    group_id = seeded.dp_active.id
    r = client.put(f'/groups/{group_id}', headers=login('teacher_dnipro'), json={'name': 'DP-096'})
    assert r.status_code == 200
    body = r.json()
    assert body['name'] == 'DP-096'
    assert body['status'] == 'in progress'
    assert body['start_date'] == '2026-09-01'
    assert body['finish_date'] == '2026-12-20'
    assert body['teachers'] == ['teacher_dnipro']


def test_update_rejections(client, seeded, login):
    kv_id = seeded.kv_planned.id
    dp_graduated_id = seeded.dp_graduated.id
    headers = login('teacher_dnipro')
    r = client.put(f'/groups/{kv_id}', headers=headers, json={'name': 'KV-999'})
    assert r.status_code == 403
    assert r.json()['key'] == 'auth.group.edit.teacher.alienLocation'
    r2 = client.put(f'/groups/{dp_graduated_id}', headers=headers, json={'finish_date': '2026-06-30'})
    assert r2.status_code == 403
    assert r2.json()['key'] == 'auth.group.edit.teacher.groupGraduated'
    r3 = client.put('/groups/999', headers=headers, json={'name': 'nothing'})
    assert r3.status_code == 404
    assert r3.json()['key'] == 'notFound.group'


def test_delete_group(client, seeded, login):
    graduated_id = seeded.dp_graduated.id
    active_id = seeded.dp_active.id
    headers = login('coord_dnipro')
    r = client.delete(f'/groups/{active_id}', headers=headers)
    assert r.status_code == 400
    assert r.json()['key'] == 'group.delete.hasStudents'
    r2 = client.delete(f'/groups/{graduated_id}', headers=headers)
    assert r2.status_code == 204
    r3 = client.get(f'/groups/{graduated_id}', headers=headers)
    assert r3.status_code == 404


def test_filter_groups(client, seeded, login):
    kyiv_id = seeded.kyiv.id
    r = client.post('/groups/filter', headers=login('admin'), json={'locations': [kyiv_id]})
    assert r.status_code == 200
    assert [g['name'] for g in r.json()] == ['KV-101']


def test_assign_teacher(client, seeded, login):
    group_id = seeded.dp_active.id
    teacher_id = seeded.teacher_other.id
    r = client.put(f'/groups/{group_id}/teachers/{teacher_id}', headers=login('coord_dnipro'))
    assert r.status_code == 200
    assert r.json()['teachers'] == ['teacher_dnipro', 'teacher_other']
    r2 = client.delete(f'/groups/{group_id}/teachers/{teacher_id}', headers=login('coord_kyiv'))
    assert r2.status_code == 403


def test_add_students_missing_first_name(client, seeded, login):
    group_id = seeded.dp_active.id
    payload = [{
        'last_name': 'Bondar',
        'english_level_id': seeded.advanced.id,
        'expert_id': seeded.expert.id,
    }]
    r = client.post(f'/groups/{group_id}/students', headers=login('coord_dnipro'), json=payload)
    assert r.status_code == 400
    assert r.json()['key'] == 'illegalArgs.student.firstName'
    r2 = client.get(f'/groups/{group_id}/students', headers=login('coord_dnipro'))
    assert [s['last_name'] for s in r2.json()] == ['Petrenko']


def test_add_and_update_students(client, seeded, login):
    group_id = seeded.kv_planned.id
    level_id = seeded.intermediate.id
    expert_id = seeded.expert.id
    headers = login('coord_kyiv')
    r = client.post(f'/groups/{group_id}/students', headers=headers, json=[{
        'first_name': 'Maria', 'last_name': 'Lysenko', 'english_level_id': level_id,
        'expert_id': expert_id, 'entry_score': 4.2, 'incoming_test': True,
    }])
    assert r.status_code == 200
    student_id = r.json()[0]['id']
    r2 = client.put(f'/students/{student_id}', headers=headers, json={'entry_score': 4.9})
    assert r2.status_code == 200
    assert r2.json()['entry_score'] == 4.9
    assert r2.json()['first_name'] == 'Maria'


def test_events_wire_format(client, seeded, login):
    dp_id = seeded.dp_active.id
    kv_id = seeded.kv_planned.id
    headers = login('teacher_dnipro')
    r = client.get(f'/groups/{dp_id}/events/key', headers=headers)
    assert r.status_code == 200
    assert [e['date_time'] for e in r.json()] == ['2026-10-15T16:00:00']
    r2 = client.get('/events', headers=headers, params={
        'groups': [dp_id, kv_id], 'start': '2026-10-01T00:00:00', 'finish': '2026-12-31T00:00:00',
    })
    assert [e['date_time'] for e in r2.json()] == ['2026-10-15T16:00:00', '2026-11-01T12:00:00']
    r3 = client.get('/events', headers=headers, params={
        'groups': [dp_id], 'start': '2026-12-31T00:00:00', 'finish': '2026-01-01T00:00:00',
    })
    assert r3.status_code == 400
    assert r3.json()['key'] == 'illegalArgs.event.range'


def test_student_edit_form(client, seeded, login):
    r = client.get('/students/-1/edit', headers=login('coord_dnipro'))
    assert r.status_code == 200
    body = r.json()
    assert body['id'] is None
    assert body['groups'] == ['DP-095', 'DP-090', 'KV-101']
    assert body['english_levels'] == ['Intermediate', 'Advanced']
    r2 = client.get('/students/999/edit', headers=login('coord_dnipro'))
    assert r2.status_code == 404


def test_save_student_dto(client, seeded, login):
    r = client.post('/students/dto', headers=login('coord_kyiv'), json={
        'first_name': 'Oksana', 'last_name': 'Melnyk', 'group': 'KV-101',
        'english_level': 'Advanced', 'expert': 'Anna Expert',
    })
    assert r.status_code == 200
    assert r.json()['group'] == 'KV-101'
    r2 = client.get('/students/dto', headers=login('coord_kyiv'))
    assert [s['last_name'] for s in r2.json()] == ['Petrenko', 'Melnyk']
    r3 = client.post('/students/dto', headers=login('coord_kyiv'), json={
        'first_name': 'Oksana', 'last_name': 'Melnyk', 'group': 'KV-101', 'english_level': 'Advanced',
    })
    assert r3.status_code == 400
    assert r3.json()['key'] == 'illegalArgs.student.expert'


def test_locations(client, seeded, login):
    r = client.get('/locations', headers=login('teacher_kyiv'))
    assert r.status_code == 200
    assert [(l['name'], l['coordinator']) for l in r.json()] == [('Dnipro', 'coord_dnipro'), ('Kyiv', 'coord_kyiv')]

from datetime import date, timedelta

import pytest

from schooldesk.models import AlertType, Attendance, StudentAlert

BASE = "/api/protected/teachers/class"


@pytest.fixture
def classroom(make_user, auth_client):
    teacher = make_user("teacher", department="class_teacher", assigned_class="JSS1A")
    pupils = [make_user("student", class_name="JSS1A") for _ in range(2)]
    outsider = make_user("student", class_name="JSS2A")
    return teacher, pupils, outsider, auth_client(teacher)


def mark(api, day, entries):
    return api.post(
        f"{BASE}/attendance",
        json={
            "date": day.isoformat(),
            "records": [{"student_id": str(s.id), "status": status} for s, status in entries],
        },
    )


def test_attendance_upserts_per_student_and_period(db, classroom):
    _, (amina, bayo), outsider, api = classroom
    day = date(2026, 3, 2)

    first = mark(api, day, [(amina, "present"), (bayo, "late"), (outsider, "present")]).json()
    assert len(first["results"]["successful"]) == 2
    assert first["results"]["failed"] == [
        {"student_id": str(outsider.id), "error": "Student not found in your class"}
    ]

    second = mark(api, day, [(amina, "excused")]).json()
    assert second["results"]["updated"] == [{"student_id": str(amina.id), "status": "excused"}]
    assert db.query(Attendance).count() == 2

    listed = api.get(f"{BASE}/attendance", params={"date": day.isoformat()}).json()
    assert listed["summary"]["excused"] == 1
    assert listed["summary"]["late"] == 1
    assert listed["summary"]["total"] == 2


def test_repeated_absences_raise_one_alert(db, classroom):
    _, (amina, _), _, api = classroom
    start = date(2026, 3, 2)

    for offset in range(2):
        assert mark(api, start + timedelta(days=offset), [(amina, "absent")]).json()["alerts_raised"] == []

    third = mark(api, start + timedelta(days=2), [(amina, "absent")]).json()
    assert third["alerts_raised"] == [str(amina.id)]

    fourth = mark(api, start + timedelta(days=3), [(amina, "absent")]).json()
    assert fourth["alerts_raised"] == []

    alerts = db.query(StudentAlert).all()
    assert len(alerts) == 1
    assert alerts[0].alert_type == AlertType.attendance_issue
    assert alerts[0].priority.value == "high"


def test_update_attendance_record(classroom):
    _, (amina, _), _, api = classroom
    day = date(2026, 3, 2)
    mark(api, day, [(amina, "absent")])
    record_id = api.get(f"{BASE}/attendance", params={"date": day.isoformat()}).json()["attendance"][0]["id"]

    response = api.put(f"{BASE}/attendance", json={"attendance_id": record_id, "status": "present", "reason": "Late bus"})
    assert response.status_code == 200
    assert response.json()["attendance"]["status"] == "present"

    missing = api.put(f"{BASE}/attendance", json={"attendance_id": "00000000-0000-0000-0000-000000000000"})
    assert missing.status_code == 404


def test_alert_validation_and_lifecycle(classroom):
    _, (amina, _), outsider, api = classroom
    alert = {"student_id": str(amina.id), "alert_type": "behavioral_issue", "title": "Talking", "description": "In class"}

    assert api.post(f"{BASE}/alerts", json={**alert, "alert_type": "gossip"}).status_code == 400
    assert api.post(f"{BASE}/alerts", json={**alert, "priority": "whenever"}).status_code == 400
    assert api.post(f"{BASE}/alerts", json={**alert, "student_id": str(outsider.id)}).status_code == 404

    created = api.post(f"{BASE}/alerts", json=alert)
    assert created.status_code == 201
    alert_id = created.json()["alert"]["id"]

    assert [a["id"] for a in api.get(f"{BASE}/alerts", params={"status": "active"}).json()["alerts"]] == [alert_id]
    assert api.get(f"{BASE}/alerts", params={"status": "open"}).status_code == 400

    resolved = api.put(f"{BASE}/alerts/{alert_id}", json={"status": "resolved", "resolution_notes": "Spoke to parent"})
    assert resolved.json()["alert"]["status"] == "resolved"
    assert resolved.json()["alert"]["resolved_at"] is not None


def test_calendar_events_belong_to_their_creator(make_user, auth_client, classroom):
    _, _, _, api = classroom
    colleague = auth_client(make_user("teacher", department="class_teacher", assigned_class="JSS1A"))
    event = {"title": "Excursion", "start_date": "2026-04-10T09:00:00", "end_date": "2026-04-10T08:00:00"}

    assert api.post(f"{BASE}/calendar", json=event).status_code == 400

    created = api.post(f"{BASE}/calendar", json={**event, "end_date": "2026-04-10T15:00:00"})
    assert created.status_code == 201
    event_id = created.json()["event"]["id"]
    assert created.json()["event"]["class_name"] == "JSS1A"

    assert colleague.put(f"{BASE}/calendar/{event_id}", json={"title": "Mine now"}).status_code == 403
    assert colleague.delete(f"{BASE}/calendar/{event_id}").status_code == 403
    assert api.put(f"{BASE}/calendar/{event_id}", json={"location": "Museum"}).json()["event"]["location"] == "Museum"
    assert api.delete(f"{BASE}/calendar/{event_id}").status_code == 200


def test_dashboard_counts_unmarked_students(classroom):
    _, (amina, _), _, api = classroom
    mark(api, date.today(), [(amina, "present")])

    dashboard = api.get(f"{BASE}/dashboard").json()["dashboard"]
    assert dashboard["classes"] == ["JSS1A"]
    assert dashboard["total_students"] == 2
    assert dashboard["today_attendance"]["present"] == 1
    assert dashboard["today_attendance"]["unmarked"] == 1


def test_class_teacher_without_class_gets_404(make_user, auth_client):
    api = auth_client(make_user("teacher", department="class_teacher"))
    assert api.get(f"{BASE}/students").status_code == 404

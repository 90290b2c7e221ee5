import pytest

BASE = "/api/protected/teachers/coordinator"


@pytest.fixture
def junior_block(make_user, make_subject, auth_client):
    coordinator = make_user("teacher", department="coordinator", coordinator_classes=["jss1a", "JSS1B"])
    make_user("student", class_name="JSS1A", first_name="Ada")
    make_user("student", class_name="JSS1B", first_name="Bola")
    make_user("student", class_name="JSS2A", first_name="Chidi")
    make_user("teacher", department="class_teacher", assigned_class="JSS1A")
    make_subject("Music", code="MUS", classes=["JSS1B"], teacher=make_user("teacher", department="subject_teacher"))
    make_subject("Physics", code="PHY", classes=["JSS2A"], teacher=make_user("teacher", department="subject_teacher"))
    return auth_client(coordinator)


def test_dashboard_covers_coordinated_classes(junior_block):
    dashboard = junior_block.get(f"{BASE}/dashboard").json()["dashboard"]

    assert sorted(dashboard["classes"]) == ["JSS1A", "JSS1B"]
    assert dashboard["total_students"] == 2
    assert dashboard["total_teachers"] == 2
    assert dashboard["timetable"] == {"total_slots": 0, "completion_rate": 0}
    assert sorted(c["class_name"] for c in dashboard["class_stats"]) == ["JSS1A", "JSS1B"]
    assert dashboard["recent_timetable_entries"] == []


def test_students_are_limited_to_coordinated_classes(junior_block):
    everyone = junior_block.get(f"{BASE}/students").json()
    assert everyone["total"] == 2
    assert "Chidi Tester" not in [s["name"] for s in everyone["students"]]

    one_class = junior_block.get(f"{BASE}/students", params={"class_name": "jss1b"}).json()
    assert [s["name"] for s in one_class["students"]] == ["Bola Tester"]

    searched = junior_block.get(f"{BASE}/students", params={"search": "ada"}).json()
    assert [s["name"] for s in searched["students"]] == ["Ada Tester"]

    outside = junior_block.get(f"{BASE}/students", params={"class_name": "JSS2A"}).json()
    assert outside == {"success": True, "students": [], "total": 0}


def test_reports_summarize_each_class(junior_block):
    classes = junior_block.get(f"{BASE}/reports").json()["classes"]

    by_name = {c["class_name"]: c for c in classes}
    assert set(by_name) == {"JSS1A", "JSS1B"}
    assert by_name["JSS1A"]["student_count"] == 1
    assert by_name["JSS1A"]["average_grade"] is None
    assert by_name["JSS1B"]["timetable_slots"] == 0


def test_coordinator_without_classes_gets_an_empty_dashboard(make_user, auth_client):
    api = auth_client(make_user("teacher", department="coordinator"))

    dashboard = api.get(f"{BASE}/dashboard").json()["dashboard"]
    assert dashboard["classes"] == []
    assert dashboard["total_students"] == 0
    assert api.get(f"{BASE}/reports").json()["classes"] == []

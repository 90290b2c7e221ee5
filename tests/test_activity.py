from datetime import datetime, timedelta

from schooldesk.models import Announcement, AuditLog
from schooldesk.services.activity import build_activity_feed, merge_feed


def item(name, timestamp):
    return {"id": name, "timestamp": timestamp}


def test_merge_feed_orders_newest_first_and_pages():
    now = datetime(2026, 3, 2, 12, 0)
    sources = [
        [item("a", now - timedelta(hours=3)), item("b", now)],
        [item("c", None)],
        [item("d", now - timedelta(hours=1))],
    ]

    feed = merge_feed(sources, limit=2, offset=0)
    assert [i["id"] for i in feed["activities"]] == ["b", "d"]
    assert feed["total"] == 4
    assert feed["has_more"] is True

    last = merge_feed(sources, limit=2, offset=2)
    assert [i["id"] for i in last["activities"]] == ["a", "c"]
    assert last["has_more"] is False


def test_feed_merges_sources_for_one_school(db, make_school, make_user):
    admin = make_user("admin")
    other = make_school(name="Riverside College", slug="riverside")
    now = datetime.utcnow()

    db.add(AuditLog(
        school_id=admin.school_id,
        user_id=None,
        action="import",
        resource="user",
        description="Nightly sync",
        created_at=now + timedelta(hours=1),
    ))
    db.add(Announcement(
        school_id=admin.school_id,
        author_id=admin.id,
        title="Exams start Monday",
        content="Revise",
        created_at=now + timedelta(hours=2),
    ))
    db.add(AuditLog(school_id=other.id, action="create", resource="user", created_at=now))
    db.commit()

    feed = build_activity_feed(db, admin.school_id, limit=10)

    types = [a["type"] for a in feed["activities"]]
    assert types[:2] == ["announcement", "audit"]
    assert "user_created" in types
    assert feed["total"] == 3
    assert feed["has_more"] is False

    system = feed["activities"][1]
    assert system["user"] == "System"
    assert system["user_initials"] == "SY"
    assert system["user_role"] == "system"
    assert system["metadata"]["action"] == "import"

    announcement = feed["activities"][0]
    assert announcement["user"] == admin.full_name
    assert announcement["metadata"]["audience"] == "all"


def test_activity_endpoint_serializes_timestamps(make_user, auth_client):
    admin = make_user("admin")
    api = auth_client(admin)

    body = api.get("/api/protected/admin/activity", params={"limit": 5}).json()

    assert body["success"] is True
    assert body["school"]["name"] == "Greenfield Academy"
    types = {a["type"] for a in body["activities"]}
    assert "login" in types
    for activity in body["activities"]:
        assert activity["timestamp"] is None or isinstance(activity["timestamp"], str)


def test_total_counts_rows_beyond_the_page(db, make_user):
    admin = make_user("admin")
    now = datetime.utcnow()
    admin.created_at = now - timedelta(days=30)
    for minutes in range(25):
        db.add(AuditLog(
            school_id=admin.school_id,
            user_id=admin.id,
            action="update",
            resource="user",
            created_at=now - timedelta(minutes=minutes),
        ))
    db.commit()

    first = build_activity_feed(db, admin.school_id, limit=20)
    assert len(first["activities"]) == 20
    assert first["total"] == 25
    assert first["has_more"] is True

    rest = build_activity_feed(db, admin.school_id, limit=20, offset=20)
    assert len(rest["activities"]) == 5
    assert rest["has_more"] is False


def test_merge_feed_honours_a_given_total():
    now = datetime(2026, 3, 2, 12, 0)
    feed = merge_feed([[item("a", now)]], limit=1, offset=0, total=7)
    assert feed["total"] == 7
    assert feed["has_more"] is True

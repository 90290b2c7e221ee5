import pytest

from schooldesk.models.profiles import StudentProfile
from schooldesk.services.scope import applies_to_class, class_prefix_filter, stage_filter


@pytest.mark.parametrize(
    "classes, class_name",
    [
        (["JSS1A"], "jss1a"),
        (["JSS1"], "JSS1A"),
        (["JSS"], "JSS1A"),
        (["SS"], "SS 2B"),
        ([], "SS3A"),
        (None, "SS3A"),
    ],
)
def test_class_entries_that_apply(classes, class_name):
    assert applies_to_class(classes, class_name)


@pytest.mark.parametrize(
    "classes, class_name",
    [
        (["JSS1"], "JSS10"),
        (["JSS1"], "JSS10A"),
        (["JSS1A"], "JSS1"),
        (["SS"], "SSS1A"),
        (["SS"], "JSS1A"),
        (["JSS1A"], ""),
    ],
)
def test_class_entries_that_do_not_apply(classes, class_name):
    assert not applies_to_class(classes, class_name)


def test_prefix_filter_stops_at_class_boundaries(db, make_user):
    for class_name in ("JSS1A", "JSS1B", "JSS10A", "JSS2A", "SS1A"):
        make_user("student", class_name=class_name)

    def matching(condition):
        rows = db.query(StudentProfile.class_name).filter(condition).all()
        return sorted(r[0] for r in rows)

    assert matching(class_prefix_filter(StudentProfile.class_name, ["jss1"])) == ["JSS1A", "JSS1B"]
    assert matching(class_prefix_filter(StudentProfile.class_name, ["JSS10A", "SS1A"])) == ["JSS10A", "SS1A"]
    assert matching(stage_filter(StudentProfile.class_name, "SS")) == ["SS1A"]
    assert class_prefix_filter(StudentProfile.class_name, []) is None

from callrelay.models import FieldShape
from callrelay.services.attempts import activity_attempts, update_attempts


def test_update_attempts_order_verb_then_shape():
    labels = [attempt.label for attempt in update_attempts(7)]
    assert labels == [
        "PUT /candidate/7 style=obj-map",
        "PUT /candidate/7 style=kv-array",
        "PUT /candidate/7 style=direct",
        "PATCH /candidate/7 style=obj-map",
        "PATCH /candidate/7 style=kv-array",
        "PATCH /candidate/7 style=direct",
    ]
    assert update_attempts(7)[0].shape is FieldShape.KEYED_MAP


def test_activity_attempts_preferred_first_without_duplicates():
    paths = [attempt.path for attempt in activity_attempts("7", "/candidate/7/notes")]
    assert paths == [
        "/candidate/7/notes",
        "/candidate/7/activities",
        "/candidate/7/activity",
        "/activities",
        "/activity",
        "/notes",
    ]


def test_activity_attempts_take_operator_path_literally():
    paths = [attempt.path for attempt in activity_attempts("7", "hooks/{x}/log{")]
    assert paths[0] == "/hooks/{x}/log{"
    assert paths[1:] == [
        "/candidate/7/activities",
        "/candidate/7/activity",
        "/candidate/7/notes",
        "/activities",
        "/activity",
        "/notes",
    ]

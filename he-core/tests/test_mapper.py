import json
from datetime import datetime, timezone

import pytest

from he_core.schemas.entities import TaskComment
from he_core.sync.mapper import (
    DEFAULT_INCIDENT_IMAGE,
    comments_payload,
    incident_from_dto,
    map_category_to_department,
    map_priority,
    migrate_delay_history,
    parse_comments,
    task_from_dto,
    task_status_payload,
    user_from_dto,
)


@pytest.mark.parametrize("value,expected", [(3, "High"), (5, "High"), (2, "Medium"), (1, "Low"), (None, "Medium"), ("low", "Low")])
def test_map_priority(value, expected):
    assert map_priority(value) == expected


@pytest.mark.parametrize("category,expected", [
    ("Fire Hazard", "Fire & Safety"),
    ("Machine Guard Missing", "Mechanical"),
    ("Chemical Leak", "Environmental"),
    ("Housekeeping", "General"),
    (None, "General"),
])
def test_map_category_to_department(category, expected):
    assert map_category_to_department(category) == expected


def test_task_status_aliases():
    base = {"id": 7, "description": "Fix guard rail"}

    assert task_from_dto({**base, "status": "InProgress"}).status == "In Progress"
    assert task_from_dto({**base, "status": "Overdue"}).status == "Open"
    assert task_from_dto({**base, "status": "Pending"}).status == "Open"
    assert task_from_dto({**base, "status": "Completed"}).status == "Completed"


def test_overdue_with_delay_history_reads_back_as_delayed():
    task = task_from_dto({
        "id": 7,
        "status": "Overdue",
        "delayHistory": [{"reason": "Parts on order", "date": "2026-03-20T00:00:00Z"}],
    })

    assert task.status == "Delayed"
    assert task.delay_reason == "Parts on order"


def test_incident_defaults():
    incident = incident_from_dto({"id": 1, "dateTime": "2026-03-01T10:00:00", "deviceId": "cam-4"})

    assert incident.image_url == DEFAULT_INCIDENT_IMAGE
    assert incident.description == "Incident detected by cam-4"
    assert incident.captured_at.tzinfo is not None
    assert incident.status == "Open"


def test_incident_first_media_uri_is_image():
    incident = incident_from_dto({
        "id": 1, "capturedAt": "2026-03-01T10:00:00Z", "mediaUris": ["https://img/1.jpg", "https://img/2.jpg"],
        "status": "Rejected",
    })

    assert incident.image_url == "https://img/1.jpg"
    assert incident.status == "Closed"


def test_legacy_delay_fields_become_history():
    task = task_from_dto({
        "id": 9,
        "status": "Delayed",
        "delayReason": "Parts on order",
        "delayDate": "2026-03-20T00:00:00Z",
    })

    assert len(task.delay_history) == 1
    assert task.delay_reason == "Parts on order"
    assert task.delay_date == datetime(2026, 3, 20, tzinfo=timezone.utc)


def test_delay_history_takes_precedence_over_legacy_fields():
    history = migrate_delay_history({
        "delayHistory": [
            {"reason": "First", "date": "2026-03-10T00:00:00Z"},
            {"reason": "Second", "date": "2026-03-12T00:00:00Z"},
        ],
        "delayReason": "ignored",
        "delayDate": "2026-01-01T00:00:00Z",
    })

    assert [entry.reason for entry in history] == ["First", "Second"]


def test_comments_decoded_from_json_string():
    raw = json.dumps([
        {"text": "Started work", "timestamp": "2026-03-10T09:00:00Z", "userId": "5", "userRole": "Employee"},
        {"text": "Checked", "timestamp": "2026-03-10T10:00:00Z", "userRole": "SafetyOfficer"},
    ])

    comments = parse_comments(raw, "t1")

    assert [c.text for c in comments] == ["Started work", "Checked"]
    assert comments[0].user_role == "employee"
    # roles outside the portal's two are treated as employee
    assert comments[1].user_role == "employee"
    assert all(c.task_id == "t1" for c in comments)


def test_user_from_dto():
    user = user_from_dto({"id": 3, "firstName": "Asha", "lastName": "Rao", "role": "Employee", "company": "Electrical"})

    assert user.name == "Asha Rao"
    assert user.role == "employee"
    assert user.department == "Electrical"


@pytest.mark.parametrize("status, expected", [
    ("Open", "Pending"),
    ("In Progress", "InProgress"),
    ("Completed", "Completed"),
    ("Delayed", "Overdue"),
])
def test_status_payload_uses_backend_names(status, expected):
    assert task_status_payload(status) == expected


def test_status_payload_rejects_unknown_status():
    with pytest.raises(ValueError):
        task_status_payload("Escalated")


def test_comment_without_timestamp_is_skipped(caplog):
    raw = [
        {"text": "Started work", "timestamp": "2026-03-10T09:00:00Z"},
        {"text": "No time on this one"},
        "not a comment",
        {"text": "Finished", "timestamp": "2026-03-10T11:00:00Z"},
    ]

    with caplog.at_level("WARNING", logger="he-core.mapper"):
        comments = parse_comments(raw, "t1")

    assert [c.text for c in comments] == ["Started work", "Finished"]
    assert "comment 1 of task t1" in caplog.text


def test_task_kept_when_one_comment_is_malformed():
    task = task_from_dto({
        "id": 7,
        "description": "Fix valve",
        "comments": json.dumps([{"text": "Missing time"}, {"text": "Ok", "timestamp": "2026-03-10T09:00:00Z"}]),
    })

    assert task.id == "7"
    assert [c.text for c in task.comments] == ["Ok"]


def test_created_at_is_stable_across_mappings():
    dto = {"id": 7, "description": "Fix valve", "status": "Pending"}

    assert task_from_dto(dto).created_at is None
    assert task_from_dto(dto) == task_from_dto(dto)

    dated = task_from_dto({**dto, "updatedAt": "2026-03-12T08:00:00Z"})
    assert dated.created_at == datetime(2026, 3, 12, 8, tzinfo=timezone.utc)
    assert task_from_dto({**dto, "createdAt": "2026-03-01T08:00:00Z", "updatedAt": "2026-03-12T08:00:00Z"}).created_at \
        == datetime(2026, 3, 1, 8, tzinfo=timezone.utc)


def test_comments_payload_is_json_array():
    comment = TaskComment(
        id="c1", task_id="t1", user_id="u1", user_name="Asha", user_role="employee",
        text="Done", timestamp=datetime(2026, 3, 10, tzinfo=timezone.utc),
    )

    decoded = json.loads(comments_payload([comment]))

    assert decoded[0]["text"] == "Done"
    assert decoded[0]["userRole"] == "employee"

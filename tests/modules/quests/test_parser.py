from questpilot.core.constants import TaskKind
from questpilot.modules.quests.parser import (
    eligible_tasks,
    find_task,
    matches_task_id,
    parse_task,
    parse_tasks,
    parse_timestamp,
)

NOW = 1_700_000_000_000


def _store_record(quest_id="1300000000000000001", kind="PLAY_ON_DESKTOP", target=900, value=120, **status):
    return {
        "id": quest_id,
        "config": {
            "expiresAt": "2099-01-01T00:00:00+00:00",
            "application": {
                "id": "555",
                "name": "Star Game",
                "executables": [{"os": "win32", "name": ">star.exe"}],
            },
            "messages": {"questName": "Star Quest"},
            "taskConfigV2": {"tasks": {kind: {"target": target}}},
        },
        "userStatus": {"progress": {kind: {"value": value}}, **status},
    }


def test_parse_normalized_record():
    task = parse_task({
        "questId": "42",
        "questName": "Watch it",
        "applicationId": "7",
        "applicationName": "Video App",
        "taskType": "WATCH_VIDEO",
        "secondsNeeded": 30,
        "secondsDone": 5,
        "isCompleted": False,
        "expiresAt": NOW + 1000,
    })

    assert task.task_id == "42"
    assert task.kind == TaskKind.WATCH_VIDEO
    assert task.owner_app_name == "Video App"
    assert task.seconds_needed == 30
    assert task.seconds_done == 5
    assert task.expires_at == NOW + 1000
    assert not task.is_time_gated


def test_parse_store_record():
    task = parse_task(_store_record(enrolledAt="2024-01-01T00:00:00Z"))

    assert task.task_id == "1300000000000000001"
    assert task.kind == TaskKind.PLAY_ON_DESKTOP
    assert task.owner_app_id == "555"
    assert task.name == "Star Quest"
    assert task.seconds_needed == 900
    assert task.seconds_done == 120
    assert task.enrolled is True
    assert task.completed is False
    assert task.is_time_gated
    assert task.app_meta["executables"][0]["name"] == ">star.exe"


def test_store_record_kind_detection_follows_declared_order():
    raw = _store_record()
    raw["config"]["taskConfigV2"]["tasks"] = {
        "PLAY_ACTIVITY": {"target": 10},
        "WATCH_VIDEO": {"target": 20},
    }
    task = parse_task(raw)
    assert task.kind == TaskKind.WATCH_VIDEO
    assert task.seconds_needed == 20


def test_unparseable_records_are_skipped():
    records = [None, "x", {"questId": "1", "taskType": "UNKNOWN"}, {"taskType": "WATCH_VIDEO"},
               {"questId": "2", "taskType": "WATCH_VIDEO", "secondsNeeded": 10}]
    tasks = parse_tasks(records)
    assert [t.task_id for t in tasks] == ["2"]


def test_tolerant_id_match_across_fields():
    raw = {"questImageId": 12345, "taskType": "PLAY_ACTIVITY", "secondsNeeded": 60}
    assert matches_task_id(raw, "12345")
    assert matches_task_id(raw, " 12345 ")
    assert not matches_task_id(raw, "")

    task = parse_task({"questId": "a", "id": "b", "taskType": "PLAY_ACTIVITY", "secondsNeeded": 60})
    assert find_task([task], "b") is task
    assert find_task([task], "a") is task
    assert find_task([task], "c") is None


def test_parse_timestamp_variants():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp(True) is None
    assert parse_timestamp(123) == 123
    assert parse_timestamp("456") == 456
    assert parse_timestamp("1970-01-01T00:00:01Z") == 1000
    assert parse_timestamp("not a date") is None


def test_eligible_tasks_filters_expired_completed_and_ignored():
    records = [
        {"questId": "ok", "taskType": "PLAY_ON_DESKTOP", "secondsNeeded": 60, "expiresAt": NOW + 1},
        {"questId": "expired", "taskType": "PLAY_ON_DESKTOP", "secondsNeeded": 60, "expiresAt": NOW - 1},
        {"questId": "done", "taskType": "PLAY_ON_DESKTOP", "secondsNeeded": 60, "secondsDone": 60},
        {"questId": "flagged", "taskType": "WATCH_VIDEO", "secondsNeeded": 60, "isCompleted": True},
        {"questId": "1412491570820812933", "taskType": "WATCH_VIDEO", "secondsNeeded": 60},
    ]
    tasks = parse_tasks(records)

    result = eligible_tasks(tasks, NOW, ["1412491570820812933"])
    assert [t.task_id for t in result] == ["ok"]


def test_clamped_seconds_done():
    task = parse_task({"questId": "1", "taskType": "PLAY_ON_DESKTOP", "secondsNeeded": 60, "secondsDone": 75})
    assert task.clamped_seconds_done() == 60
    assert task.to_dict()["secondsDone"] == 60

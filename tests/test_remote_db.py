import os
import sys
import json
import datetime
import unittest

import requests

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from exceptions import PersistenceError
from models import CompletedSet, CompletedWorkout, PlannedExercise, PlannedWorkout, WeightLogEntry
from remote_db import (
    RemoteClient,
    RemoteCompletedWorkoutRepository,
    RemotePlannedWorkoutRepository,
    RemoteWeightLogRepository,
)

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, body: bytes | None = None):
        self.status_code = status_code
        if body is None:
            body = b"" if payload is None else json.dumps(payload).encode()
        self.content = body
        self.text = body.decode()

    def json(self):
        return json.loads(self.content)


class FakeSession:
    """Records requests and replies with queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.mounted = {}

    def mount(self, prefix, adapter):
        self.mounted[prefix] = adapter

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_client(*responses) -> RemoteClient:
    return RemoteClient(
        "https://example.test/",
        "anon-key",
        session=FakeSession(*responses),
        timeout=3,
    )


class RemoteClientTestCase(unittest.TestCase):
    def test_read_retry_policy(self) -> None:
        client = RemoteClient("https://example.test", "k", read_retries=4, backoff=0.25)
        retry = client.session.get_adapter("https://example.test").max_retries
        self.assertEqual(retry.total, 4)
        self.assertEqual(retry.backoff_factor, 0.25)
        self.assertEqual(set(retry.status_forcelist), {502, 503, 504})
        self.assertEqual(set(retry.allowed_methods), {"GET"})

    def test_headers_and_url(self) -> None:
        client = make_client(FakeResponse(payload=[]))
        client.access_token = "user-token"
        self.assertEqual(client.select("user_weight_logs", {"select": "*"}), [])
        method, url, kwargs = client.session.calls[0]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "https://example.test/rest/v1/user_weight_logs")
        self.assertEqual(kwargs["headers"]["apikey"], "anon-key")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer user-token")
        self.assertEqual(kwargs["timeout"], 3)

    def test_network_error(self) -> None:
        client = make_client(requests.ConnectionError("down"))
        with self.assertRaises(PersistenceError):
            client.select("planned_workouts", {})

    def test_rejected_request_keeps_status(self) -> None:
        client = make_client(FakeResponse(401, {"message": "JWT expired"}))
        with self.assertRaises(PersistenceError) as ctx:
            client.insert("planned_workouts", {"name": "x"})
        self.assertEqual(ctx.exception.status_code, 401)

    def test_invalid_json(self) -> None:
        client = make_client(FakeResponse(body=b"<html>"))
        with self.assertRaises(PersistenceError):
            client.select("planned_workouts", {})

    def test_unexpected_shape(self) -> None:
        client = make_client(FakeResponse(payload={"id": 1}))
        with self.assertRaises(PersistenceError):
            client.select("planned_workouts", {})


class RemotePlannedWorkoutRepositoryTestCase(unittest.TestCase):
    def test_list_embeds_exercises_in_order(self) -> None:
        rows = [
            {
                "id": 12,
                "name": "Push Day",
                "created_at": NOW.isoformat(),
                "user_id": "alice",
                "planned_exercises": [
                    {"name": "Dips", "sets": 2, "order_index": 1},
                    {"name": "Bench Press", "sets": 3, "order_index": 0},
                ],
            }
        ]
        client = make_client(FakeResponse(payload=rows))
        (plan,) = RemotePlannedWorkoutRepository(client).list("alice")
        self.assertEqual(plan.id, "12")
        self.assertEqual(plan.exercise_names, ["Bench Press", "Dips"])
        params = client.session.calls[0][2]["params"]
        self.assertEqual(params["user_id"], "eq.alice")
        self.assertEqual(params["select"], "*,planned_exercises(*)")

    def test_malformed_row(self) -> None:
        client = make_client(FakeResponse(payload=[{"name": "no id"}]))
        with self.assertRaises(PersistenceError):
            RemotePlannedWorkoutRepository(client).list("alice")

    def test_create_inserts_parent_then_children(self) -> None:
        client = make_client(
            FakeResponse(201, [{"id": 5, "name": "Push", "created_at": NOW.isoformat()}]),
            FakeResponse(201, [{"workout_id": 5, "name": "Bench Press", "sets": 4, "order_index": 0}]),
        )
        plan = PlannedWorkout(name="Push", exercises=[PlannedExercise(name="Bench Press", target_sets=4)])
        saved = RemotePlannedWorkoutRepository(client).create("alice", plan)
        self.assertEqual(saved.id, "5")
        self.assertEqual(saved.exercises[0].target_sets, 4)
        (_, _, parent), (_, url, child) = client.session.calls
        self.assertEqual(parent["json"], {"name": "Push", "user_id": "alice"})
        self.assertEqual(parent["headers"]["Prefer"], "return=representation")
        self.assertTrue(url.endswith("/planned_exercises"))
        self.assertEqual(child["json"][0]["workout_id"], "5")

    def test_create_discards_parent_when_children_fail(self) -> None:
        client = make_client(
            FakeResponse(201, [{"id": 5, "name": "Push"}]),
            FakeResponse(500, {"message": "boom"}),
            FakeResponse(204),
        )
        plan = PlannedWorkout(name="Push", exercises=[PlannedExercise(name="Bench Press")])
        with self.assertRaises(PersistenceError):
            RemotePlannedWorkoutRepository(client).create("alice", plan)
        method, url, kwargs = client.session.calls[-1]
        self.assertEqual(method, "DELETE")
        self.assertTrue(url.endswith("/planned_workouts"))
        self.assertEqual(kwargs["params"], {"id": "eq.5"})

    def test_delete_is_single_parent_call(self) -> None:
        client = make_client(FakeResponse(204))
        RemotePlannedWorkoutRepository(client).delete("5")
        self.assertEqual(len(client.session.calls), 1)


class RemoteCompletedWorkoutRepositoryTestCase(unittest.TestCase):
    def test_create_and_map(self) -> None:
        client = make_client(
            FakeResponse(
                201,
                [{"id": "c1", "name": "Push Day", "completed_at": NOW.isoformat(), "duration_minutes": 40}],
            ),
            FakeResponse(
                201,
                [
                    {"exercise_name": "Bench Press", "set_number": 1, "weight": 135, "reps": 10, "order_index": 0},
                    {"exercise_name": "Bench Press", "set_number": 2, "weight": 145, "reps": 8, "order_index": 1},
                ],
            ),
        )
        workout = CompletedWorkout(
            name="Push Day",
            completed_at=NOW,
            duration_minutes=40,
            sets=[
                CompletedSet(exercise_name="Bench Press", set_number=1, weight=135, reps=10),
                CompletedSet(exercise_name="Bench Press", set_number=2, weight=145, reps=8),
            ],
        )
        saved = RemoteCompletedWorkoutRepository(client).create("alice", workout)
        self.assertEqual(saved.id, "c1")
        self.assertEqual(saved.total_volume, 135 * 10 + 145 * 8)
        child = client.session.calls[1][2]["json"]
        self.assertEqual([c["order_index"] for c in child], [0, 1])

    def test_create_without_sets_skips_child_insert(self) -> None:
        client = make_client(
            FakeResponse(201, [{"id": "c2", "name": "Rest", "completed_at": NOW.isoformat()}])
        )
        saved = RemoteCompletedWorkoutRepository(client).create(
            "alice", CompletedWorkout(name="Rest", completed_at=NOW)
        )
        self.assertEqual(saved.sets, [])
        self.assertEqual(len(client.session.calls), 1)

    def test_child_failure_discards_parent(self) -> None:
        client = make_client(
            FakeResponse(201, [{"id": "c3", "name": "Push", "completed_at": NOW.isoformat()}]),
            requests.Timeout("slow"),
            FakeResponse(204),
        )
        workout = CompletedWorkout(
            name="Push",
            completed_at=NOW,
            sets=[CompletedSet(exercise_name="Bench Press", set_number=1, weight=100, reps=5)],
        )
        with self.assertRaises(PersistenceError):
            RemoteCompletedWorkoutRepository(client).create("alice", workout)
        self.assertEqual(client.session.calls[-1][2]["params"], {"id": "eq.c3"})


class RemoteWeightLogRepositoryTestCase(unittest.TestCase):
    def test_create_and_list(self) -> None:
        row = {"id": 9, "weight": 181.2, "logged_at": NOW.isoformat(), "notes": None, "user_id": "alice"}
        client = make_client(FakeResponse(201, [row]), FakeResponse(payload=[row]))
        repo = RemoteWeightLogRepository(client)
        saved = repo.create("alice", WeightLogEntry(weight=181.2))
        self.assertEqual(saved.id, "9")
        self.assertNotIn("logged_at", client.session.calls[0][2]["json"])
        (entry,) = repo.list("alice")
        self.assertEqual(entry.logged_at, NOW)

    def test_non_finite_weight_not_sent(self) -> None:
        client = make_client()
        entry = WeightLogEntry.model_construct(weight=float("inf"), logged_at=None, notes=None)
        with self.assertRaises(ValueError):
            RemoteWeightLogRepository(client).create("alice", entry)
        self.assertEqual(client.session.calls, [])

    def test_delete(self) -> None:
        client = make_client(FakeResponse(204))
        RemoteWeightLogRepository(client).delete("9")
        method, url, kwargs = client.session.calls[0]
        self.assertEqual((method, kwargs["params"]), ("DELETE", {"id": "eq.9"}))
        self.assertTrue(url.endswith("/user_weight_logs"))


if __name__ == "__main__":
    unittest.main()

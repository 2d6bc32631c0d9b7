from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from models.notification import Notification
from models.task import Task, TaskStatus
from models.task_event import EventType, TaskEvent
from tests.utils.db import AppTestCase


class TaskApiTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        self.owner_id = self.create_user("owner")
        self.helper_id = self.create_user("helper")
        self.stranger_id = self.create_user("stranger")
        self.login(self.owner_id)

    def _create(self, **overrides):
        payload = {"title": "Ship release", "description": "Tag **v1.0**", "priority": "HIGH"}
        payload.update(overrides)
        return self.client.post("/api/tasks/create", json=payload)

    def test_create_task(self):
        response = self._create(assignedTo=self.helper_id, dueDate="2026-11-01T09:00:00Z")

        self.assertEqual(response.status_code, 201)
        data = response.get_json()["data"]
        self.assertEqual(data["title"], "Ship release")
        self.assertEqual(data["status"], TaskStatus.OPEN.value)
        self.assertEqual(data["priority"], "HIGH")
        self.assertEqual(data["assignedTo"], self.helper_id)
        self.assertEqual(data["dueDate"], "2026-11-01T09:00:00.000Z")

        with self.app.app_context():
            events = TaskEvent.query.filter_by(task_id=data["id"]).all()
            self.assertEqual([event.event_type for event in events], [EventType.CREATED.value])
            self.assertEqual(Notification.query.filter_by(user_id=self.helper_id).count(), 1)

    def test_self_assignment_does_not_notify(self):
        self._create(assignedTo=self.owner_id)
        with self.app.app_context():
            self.assertEqual(Notification.query.count(), 0)

    def test_create_validates_input(self):
        response = self._create(title="", priority="URGENT", assignedTo=4242, dueDate="tomorrow")

        self.assertEqual(response.status_code, 400)
        errors = response.get_json()["fieldErrors"]
        for field in ("title", "priority", "assignedTo", "dueDate"):
            self.assertIn(field, errors)

    def test_create_requires_login(self):
        response = self.app.test_client().post("/api/tasks/create", json={"title": "Nope"})
        self.assertEqual(response.status_code, 401)

    def test_list_filters_by_visibility_and_status(self):
        task_id = self._create().get_json()["data"]["id"]
        self._create(title="Assigned elsewhere", assignedTo=self.helper_id, status="IN_PROGRESS")
        with self.app.app_context():
            self.db.session.add(Task(title="Private", created_by_id=self.stranger_id))
            self.db.session.commit()

        response = self.client.get("/api/tasks")
        titles = {task["title"] for task in response.get_json()["data"]}
        self.assertEqual(titles, {"Ship release", "Assigned elsewhere"})

        response = self.client.get("/api/tasks?status=OPEN")
        self.assertEqual([task["id"] for task in response.get_json()["data"]], [task_id])

        self.login(self.helper_id)
        response = self.client.get("/api/tasks")
        self.assertEqual([task["title"] for task in response.get_json()["data"]], ["Assigned elsewhere"])

    def test_list_rejects_unknown_status(self):
        response = self.client.get("/api/tasks?status=BLOCKED")
        self.assertEqual(response.status_code, 400)

    def test_detail_includes_events_and_rendered_description(self):
        task_id = self._create().get_json()["data"]["id"]

        response = self.client.get(f"/api/tasks/{task_id}")

        self.assertEqual(response.status_code, 200)
        data = response.get_json()["data"]
        self.assertIn("<strong>v1.0</strong>", data["descriptionHtml"])
        self.assertEqual(data["events"][0]["eventType"], EventType.CREATED.value)

    def test_detail_access_control(self):
        task_id = self._create().get_json()["data"]["id"]

        self.login(self.stranger_id)
        self.assertEqual(self.client.get(f"/api/tasks/{task_id}").status_code, 403)
        self.assertEqual(self.client.get("/api/tasks/9999").status_code, 404)

    def test_only_creator_deletes(self):
        task_id = self._create(assignedTo=self.helper_id).get_json()["data"]["id"]

        self.login(self.helper_id)
        self.assertEqual(self.client.delete(f"/api/tasks/{task_id}").status_code, 403)

        self.login(self.owner_id)
        self.assertEqual(self.client.delete(f"/api/tasks/{task_id}").status_code, 200)
        with self.app.app_context():
            self.assertIsNone(self.db.session.get(Task, task_id))
            self.assertEqual(TaskEvent.query.count(), 0)

    def test_update_status_records_event_and_notifies_assignee(self):
        task_id = self._create(assignedTo=self.helper_id).get_json()["data"]["id"]

        with patch("services.slack_service.notify_task_status", return_value=0) as mock_slack:
            response = self.client.post(
                "/api/tasks/update-status", json={"taskId": task_id, "status": "IN_PROGRESS"}
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"]["status"], "IN_PROGRESS")
        mock_slack.assert_called_once()
        with self.app.app_context():
            event = TaskEvent.query.filter_by(
                task_id=task_id, event_type=EventType.STATUS_CHANGED.value
            ).one()
            self.assertEqual((event.old_status, event.new_status), ("OPEN", "IN_PROGRESS"))
            self.assertEqual(event.changed_by_id, self.owner_id)
            self.assertEqual(Notification.query.filter_by(user_id=self.helper_id).count(), 2)

    def test_update_status_to_same_value_records_nothing(self):
        task_id = self._create().get_json()["data"]["id"]

        response = self.client.post("/api/tasks/update-status", json={"taskId": task_id, "status": "OPEN"})

        self.assertEqual(response.status_code, 200)
        with self.app.app_context():
            self.assertEqual(
                TaskEvent.query.filter_by(event_type=EventType.STATUS_CHANGED.value).count(), 0
            )

    def test_update_status_rejects_invalid_status(self):
        task_id = self._create().get_json()["data"]["id"]
        response = self.client.post("/api/tasks/update-status", json={"taskId": task_id, "status": "LATER"})
        self.assertEqual(response.status_code, 400)

    def test_status_event_failure_keeps_status_change(self):
        task_id = self._create(assignedTo=self.helper_id).get_json()["data"]["id"]
        error = OperationalError("INSERT INTO task_events", {}, Exception("database is locked"))

        with patch("services.event_service.record_task_event", side_effect=error), patch(
            "services.slack_service.notify_task_status"
        ) as mock_slack, self.assertLogs(level="ERROR") as logs:
            response = self.client.post(
                "/api/tasks/update-status", json={"taskId": task_id, "status": "DONE"}
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"]["status"], "DONE")
        self.assertIn(f"Unable to record status change for task {task_id}", logs.output[0])
        mock_slack.assert_not_called()
        with self.app.app_context():
            self.assertEqual(self.db.session.get(Task, task_id).status, "DONE")
            self.assertEqual(
                TaskEvent.query.filter_by(event_type=EventType.STATUS_CHANGED.value).count(), 0
            )
            # Only the assignment notification from creation survives the rollback
            self.assertEqual(Notification.query.filter_by(user_id=self.helper_id).count(), 1)

    def test_update_priority_records_event(self):
        task_id = self._create(priority="LOW").get_json()["data"]["id"]

        response = self.client.post("/api/tasks/update-priority", json={"taskId": task_id, "priority": "HIGH"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"]["priority"], "HIGH")
        with self.app.app_context():
            event = TaskEvent.query.filter_by(task_id=task_id, event_type=EventType.PRIORITY_CHANGED.value).one()
            self.assertEqual(event.changed_by_id, self.owner_id)

    def test_update_priority_validation_and_access(self):
        task_id = self._create().get_json()["data"]["id"]

        response = self.client.post("/api/tasks/update-priority", json={"taskId": task_id, "priority": "URGENT"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("priority", response.get_json()["fieldErrors"])

        response = self.client.post("/api/tasks/update-priority", json={"taskId": 9999, "priority": "LOW"})
        self.assertEqual(response.status_code, 404)

        self.login(self.stranger_id)
        response = self.client.post("/api/tasks/update-priority", json={"taskId": task_id, "priority": "LOW"})
        self.assertEqual(response.status_code, 403)

    def test_reassign_notifies_new_assignee(self):
        task_id = self._create().get_json()["data"]["id"]

        response = self.client.post("/api/tasks/reassign", json={"taskId": task_id, "assignedTo": self.helper_id})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"]["assignedTo"], self.helper_id)
        with self.app.app_context():
            self.assertEqual(
                TaskEvent.query.filter_by(task_id=task_id, event_type=EventType.REASSIGNED.value).count(), 1
            )
            notification = Notification.query.filter_by(user_id=self.helper_id).one()
            self.assertIn("Owner assigned you a task", notification.message)

    def test_reassign_to_null_unassigns(self):
        task_id = self._create(assignedTo=self.helper_id).get_json()["data"]["id"]

        response = self.client.post("/api/tasks/reassign", json={"taskId": task_id, "assignedTo": None})

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.get_json()["data"]["assignedTo"])

    def test_reassign_rejects_unknown_assignee(self):
        task_id = self._create().get_json()["data"]["id"]

        response = self.client.post("/api/tasks/reassign", json={"taskId": task_id, "assignedTo": 4242})

        self.assertEqual(response.status_code, 400)
        self.assertIn("assignedTo", response.get_json()["fieldErrors"])


class TaskBulkApiTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        self.owner_id = self.create_user("owner")
        self.helper_id = self.create_user("helper")
        self.stranger_id = self.create_user("stranger")
        self.login(self.owner_id)
        self.task_ids = [
            self.client.post("/api/tasks/create", json={"title": title}).get_json()["data"]["id"]
            for title in ("Write docs", "Fix build", "Cut release")
        ]

    def _bulk(self, action, task_ids=None, **payload):
        body = {"taskIds": task_ids or self.task_ids, "action": action, "payload": payload}
        return self.client.post("/api/tasks/bulk", json=body)

    def test_bulk_change_status(self):
        with patch("services.slack_service.notify_task_status", return_value=0):
            response = self._bulk("changeStatus", status="IN_PROGRESS")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"success": True, "affected": 3})
        with self.app.app_context():
            statuses = {task.status for task in Task.query.all()}
            self.assertEqual(statuses, {"IN_PROGRESS"})
            self.assertEqual(
                TaskEvent.query.filter_by(event_type=EventType.STATUS_CHANGED.value).count(), 3
            )

    def test_bulk_change_priority(self):
        response = self._bulk("changePriority", self.task_ids[:2], priority="HIGH")

        self.assertEqual(response.get_json()["affected"], 2)
        with self.app.app_context():
            priorities = {task.id: task.priority for task in Task.query.all()}
            self.assertEqual(priorities[self.task_ids[0]], "HIGH")
            self.assertEqual(priorities[self.task_ids[2]], "MEDIUM")
            self.assertEqual(
                TaskEvent.query.filter_by(event_type=EventType.PRIORITY_CHANGED.value).count(), 2
            )

    def test_bulk_reassign(self):
        response = self._bulk("reassign", assignedTo=self.helper_id)

        self.assertEqual(response.status_code, 200)
        with self.app.app_context():
            self.assertEqual({task.assigned_to_id for task in Task.query.all()}, {self.helper_id})
            self.assertEqual(Notification.query.filter_by(user_id=self.helper_id).count(), 3)

        response = self._bulk("reassign", assignedTo=4242)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["message"], "Assignee not found")

    def test_bulk_delete(self):
        response = self._bulk("delete", self.task_ids[:2])

        self.assertEqual(response.get_json()["affected"], 2)
        with self.app.app_context():
            self.assertEqual([task.id for task in Task.query.all()], [self.task_ids[2]])

    def test_bulk_delete_requires_creator(self):
        self._bulk("reassign", assignedTo=self.helper_id)

        self.login(self.helper_id)
        response = self._bulk("delete")

        self.assertEqual(response.status_code, 403)
        with self.app.app_context():
            self.assertEqual(Task.query.count(), 3)

    def test_bulk_rejects_invisible_or_missing_tasks(self):
        self.login(self.stranger_id)
        self.assertEqual(self._bulk("changePriority", priority="LOW").status_code, 403)

        self.login(self.owner_id)
        response = self._bulk("changePriority", self.task_ids + [9999], priority="LOW")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["message"], "Some tasks not found or access denied")
        with self.app.app_context():
            self.assertEqual({task.priority for task in Task.query.all()}, {"MEDIUM"})

    def test_bulk_validates_payload(self):
        response = self._bulk("changeStatus")
        self.assertEqual(response.status_code, 400)
        self.assertIn("status", response.get_json()["fieldErrors"])

        response = self.client.post("/api/tasks/bulk", json={"taskIds": [], "action": "delete"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("taskIds", response.get_json()["fieldErrors"])

        response = self._bulk("archive")
        self.assertEqual(response.status_code, 400)
        self.assertIn("action", response.get_json()["fieldErrors"])

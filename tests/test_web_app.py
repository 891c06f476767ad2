import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from campuscal.web_app import AppContext, create_app
from tests.helpers import BASE_START, make_event, snapshot_of


def _response(payload: object) -> mock.Mock:
    response = mock.Mock()
    response.status_code = 200
    response.ok = True
    response.text = ""
    response.json.return_value = payload
    return response


class WebAppTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        config_path = str(Path(self.temp_dir.name) / "config.yaml")
        self.context = AppContext(
            config_path,
            environ={"SAP_COOKIE": "SESSION=abc", "SAP_URL": "https://sap.example/feed"},
        )
        self.context.scheduler = mock.Mock()
        self.client = TestClient(create_app(self.context, start_scheduler=False))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_calendar_export_serves_current_snapshot(self) -> None:
        event = make_event(title="Mathematics", room="A101")
        self.context.store.replace(snapshot_of(event))

        resp = self.client.get("/calendar.ics")

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/calendar"))
        self.assertIn(f"UID:{event.uid}", resp.text)
        self.assertIn("SUMMARY:Mathematics", resp.text)
        self.assertIn("X-WR-CALNAME:SAP Campus Dual Schedule", resp.text)

    def test_unusable_feed_record_keeps_previous_export(self) -> None:
        good = {
            "title": "Mathematics",
            "start": BASE_START,
            "end": BASE_START + 3600,
            "description": "",
            "room": "A101",
            "instructor": "Smith",
            "remarks": "",
        }
        out_of_range = dict(good, title="Broken", start=10**15, end=10**15 + 60)
        missing_title = {key: value for key, value in good.items() if key != "title"}

        with mock.patch("campuscal.feed_client.requests.get", return_value=_response([good])):
            self.assertEqual(self.context.sync_engine.run_once(trigger="startup").status, "success")

        for payload in ([good, out_of_range], [missing_title]):
            with mock.patch("campuscal.feed_client.requests.get", return_value=_response(payload)):
                with self.assertLogs("campuscal.sync_engine", level="ERROR"):
                    result = self.context.sync_engine.run_once(trigger="scheduled")
            self.assertEqual(result.status, "error")
            self.assertEqual(len(self.context.store), 1)

            resp = self.client.get("/calendar.ics")
            self.assertEqual(resp.status_code, 200)
            self.assertIn("SUMMARY:Mathematics", resp.text)
            self.assertNotIn("Broken", resp.text)

        status = self.client.get("/api/status").json()
        self.assertEqual(status["last_sync"]["status"], "error")
        self.assertEqual([change["kind"] for change in status["recent_changes"]], ["added"])
        self.assertEqual(status["recent_changes"][0]["event"]["title"], "Mathematics")

    def test_calendar_export_with_empty_store(self) -> None:
        resp = self.client.get("/calendar.ics")
        self.assertEqual(resp.status_code, 200)
        self.assertNotIn("BEGIN:VEVENT", resp.text)

    def test_health_endpoints(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, "OK")
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})

    def test_status_reports_store_and_last_sync(self) -> None:
        self.context.store.replace(snapshot_of(make_event(title="A"), make_event(title="B")))
        data = self.client.get("/api/status").json()
        self.assertEqual(data["events"], 2)
        self.assertEqual(data["version"], 1)
        self.assertIsNone(data["last_sync"])
        self.assertEqual(data["recent_changes"], [])

    def test_config_is_masked(self) -> None:
        data = self.client.get("/api/config").json()
        self.assertEqual(data["feed"]["cookie"], "***")
        self.assertEqual(data["feed"]["url"], "https://sap.example/feed")

    def test_manual_sync_triggers_scheduler(self) -> None:
        resp = self.client.post("/api/sync")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"message": "sync triggered"})
        self.context.scheduler.trigger_manual.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()

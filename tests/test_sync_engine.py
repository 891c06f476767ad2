import unittest
from unittest import mock

from campuscal.errors import FeedFetchError, FeedParseError, NotificationError
from campuscal.models import AppConfig
from campuscal.snapshot_store import SnapshotStore
from campuscal.sync_engine import SyncEngine
from tests.helpers import make_event


class SyncEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config_manager = mock.Mock()
        self.config_manager.load.return_value = AppConfig.from_dict(
            {
                "feed": {"url": "https://sap.example/feed", "cookie": "SESSION=abc"},
                "notifier": {"webhook_url": "https://discord.example/hook"},
            }
        )
        self.store = SnapshotStore()
        self.feed_client = mock.Mock()
        self.notifier = mock.Mock()
        self.notifier.send.return_value = 1
        self.engine = SyncEngine(
            self.config_manager,
            self.store,
            feed_client_factory=mock.Mock(return_value=self.feed_client),
            notifier_factory=mock.Mock(return_value=self.notifier),
        )

    def test_startup_cycle_populates_store_without_notifying(self) -> None:
        self.feed_client.fetch_events.return_value = [make_event(title="A"), make_event(title="B")]

        result = self.engine.run_once(trigger="startup")

        self.assertEqual(result.status, "success")
        self.assertEqual(result.changes, 2)
        self.assertFalse(result.notified)
        self.assertEqual(len(self.store), 2)
        self.notifier.send.assert_not_called()

    def test_first_successful_cycle_is_silent_even_when_scheduled(self) -> None:
        self.feed_client.fetch_events.return_value = [make_event(title="A")]
        result = self.engine.run_once(trigger="scheduled")
        self.assertEqual(result.status, "success")
        self.notifier.send.assert_not_called()

    def test_changes_after_startup_are_notified(self) -> None:
        smith = make_event(instructor="Smith")
        self.feed_client.fetch_events.return_value = [smith]
        self.engine.run_once(trigger="startup")

        self.feed_client.fetch_events.return_value = [smith.with_updates(instructor="Jones")]
        result = self.engine.run_once(trigger="scheduled")

        self.assertEqual(result.status, "success")
        self.assertTrue(result.notified)
        self.notifier.send.assert_called_once()
        (changes,) = self.notifier.send.call_args.args
        self.assertEqual([change.kind for change in changes], ["modified"])

    def test_unchanged_feed_does_not_notify(self) -> None:
        self.feed_client.fetch_events.return_value = [make_event()]
        self.engine.run_once(trigger="startup")
        result = self.engine.run_once(trigger="scheduled")
        self.assertEqual(result.changes, 0)
        self.notifier.send.assert_not_called()

    def test_fetch_failure_keeps_previous_snapshot(self) -> None:
        self.feed_client.fetch_events.return_value = [make_event(title="A")]
        self.engine.run_once(trigger="startup")
        before = self.store.export_snapshot()
        version = self.store.version

        for error in (FeedFetchError("HTTP 503"), FeedParseError("not a list")):
            self.feed_client.fetch_events.side_effect = error
            with self.assertLogs("campuscal.sync_engine", level="ERROR"):
                result = self.engine.run_once(trigger="scheduled")

            self.assertEqual(result.status, "error")
            self.assertEqual(result.changes, 0)
            self.assertIs(self.store.export_snapshot(), before)
            self.assertEqual(self.store.version, version)
        self.notifier.send.assert_not_called()

    def test_notification_failure_does_not_roll_back(self) -> None:
        self.feed_client.fetch_events.return_value = [make_event(title="A")]
        self.engine.run_once(trigger="startup")
        new_event = make_event(title="B")
        self.feed_client.fetch_events.return_value = [make_event(title="A"), new_event]
        self.notifier.send.side_effect = NotificationError("HTTP 500")

        with self.assertLogs("campuscal.sync_engine", level="ERROR"):
            result = self.engine.run_once(trigger="scheduled")

        self.assertEqual(result.status, "success")
        self.assertFalse(result.notified)
        self.assertIn("Notification failed", result.message)
        self.assertIn(new_event.uid, self.store.export_snapshot())

    def test_recent_changes_keep_last_non_empty_cycle(self) -> None:
        self.feed_client.fetch_events.return_value = [make_event(title="A")]
        self.engine.run_once(trigger="startup")
        self.assertEqual([change.kind for change in self.engine.recent_changes], ["added"])

        self.engine.run_once(trigger="scheduled")
        self.assertEqual([change.kind for change in self.engine.recent_changes], ["added"])

        self.feed_client.fetch_events.return_value = []
        self.engine.run_once(trigger="scheduled")
        self.assertEqual([change.kind for change in self.engine.recent_changes], ["removed"])

    def test_unexpected_error_is_reported(self) -> None:
        self.feed_client.fetch_events.side_effect = RuntimeError("boom")
        with self.assertLogs("campuscal.sync_engine", level="ERROR"):
            result = self.engine.run_once(trigger="manual")
        self.assertEqual(result.status, "error")
        self.assertIn("RuntimeError", result.message)
        self.assertIs(self.engine.last_result, result)

    def test_missing_feed_url_skips(self) -> None:
        self.config_manager.load.return_value = AppConfig.from_dict({})
        result = self.engine.run_once(trigger="scheduled")
        self.assertEqual(result.status, "skipped")
        self.feed_client.fetch_events.assert_not_called()

    def test_overlapping_run_is_dropped(self) -> None:
        self.engine._run_lock.acquire()
        try:
            result = self.engine.run_once(trigger="manual")
        finally:
            self.engine._run_lock.release()
        self.assertEqual(result.status, "skipped")
        self.feed_client.fetch_events.assert_not_called()


if __name__ == "__main__":
    unittest.main()

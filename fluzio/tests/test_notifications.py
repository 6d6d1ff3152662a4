import unittest
from datetime import datetime, timedelta, timezone

from fluzio.errors import NotFoundError, ValidationError
from fluzio.push import InMemoryPushSender, dispatch_next
from fluzio.queue import InMemoryNotificationQueue, PushJob
from fluzio.services.notifications import (
    NotificationService,
    Notifier,
    category_for,
    default_preferences,
    in_quiet_hours,
    should_send,
)
from fluzio.services.users import UserService
from fluzio.store import InMemoryDocumentStore
from shared.types import NotificationType, QuietHours

NOW = datetime(2030, 5, 1, 23, 30, tzinfo=timezone.utc)


def _at(hour, minute=0):
    return datetime(2030, 5, 1, hour, minute, tzinfo=timezone.utc)


class QuietHoursTests(unittest.TestCase):
    def test_disabled_never_quiet(self):
        self.assertFalse(in_quiet_hours(QuietHours(enabled=False), _at(23)))

    def test_window_wrapping_midnight(self):
        quiet = QuietHours(enabled=True, start_time="22:00", end_time="08:00")
        self.assertTrue(in_quiet_hours(quiet, _at(22)))
        self.assertTrue(in_quiet_hours(quiet, _at(3, 15)))
        self.assertTrue(in_quiet_hours(quiet, _at(8)))
        self.assertFalse(in_quiet_hours(quiet, _at(8, 1)))
        self.assertFalse(in_quiet_hours(quiet, _at(12)))

    def test_same_day_window(self):
        quiet = QuietHours(enabled=True, start_time="13:00", end_time="14:30")
        self.assertTrue(in_quiet_hours(quiet, _at(14, 30)))
        self.assertFalse(in_quiet_hours(quiet, _at(12, 59)))

    def test_invalid_clock(self):
        quiet = QuietHours(enabled=True, start_time="25:00", end_time="08:00")
        with self.assertRaises(ValidationError):
            in_quiet_hours(quiet, _at(1))


class ShouldSendTests(unittest.TestCase):
    def setUp(self):
        self.prefs = default_preferences("ana")
        self.prefs.quiet_hours = QuietHours(enabled=True, start_time="22:00", end_time="08:00")

    def test_quiet_hours_block_push_but_not_in_app(self):
        self.assertFalse(should_send(self.prefs, "rewards", "push", NOW))
        self.assertFalse(should_send(self.prefs, "rewards", "email", NOW))
        self.assertTrue(should_send(self.prefs, "rewards", "in_app", NOW))
        self.assertTrue(should_send(self.prefs, "rewards", "push", _at(12)))

    def test_disabled_channel(self):
        self.prefs.categories["missions"].push = False
        self.assertFalse(should_send(self.prefs, "missions", "push", _at(12)))
        self.assertTrue(should_send(self.prefs, "rewards", "push", _at(12)))

    def test_unknown_channel(self):
        with self.assertRaises(ValidationError):
            should_send(self.prefs, "rewards", "sms", _at(12))

    def test_category_for(self):
        self.assertEqual(category_for(NotificationType.MISSION_APPROVED), "missions")
        self.assertEqual(category_for(NotificationType.REWARD_REDEEMED), "rewards")
        self.assertEqual(category_for(NotificationType.BOOKING_REQUEST), "social")
        self.assertEqual(category_for(NotificationType.SYSTEM), "system")


class NotificationServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.queue = InMemoryNotificationQueue()
        self.notifier = Notifier(self.store, self.queue)
        self.service = NotificationService(self.store)

    def _notify(self, title, minutes=0):
        return self.notifier.notify(
            "ana",
            NotificationType.POINTS_ACTIVITY,
            title,
            "You earned points",
            now=_at(10) + timedelta(minutes=minutes),
        )

    def test_notify_stores_and_enqueues(self):
        first = self._notify("First")
        second = self._notify("Second", minutes=5)

        self.assertEqual(self.queue.pending_ids(), [first, second])
        listed = self.service.list_notifications("ana")
        self.assertEqual([n.title for n in listed], ["Second", "First"])
        self.assertEqual(self.service.unread_count("ana"), 2)

    def test_read_and_delete(self):
        first = self._notify("First")
        self._notify("Second", minutes=5)
        self._notify("Third", minutes=10)

        self.service.mark_read(first)
        self.assertEqual(self.service.unread_count("ana"), 2)
        self.assertEqual(self.service.mark_all_read("ana"), 2)
        self.assertEqual(self.service.unread_count("ana"), 0)

        self.service.delete_notification(first)
        self.assertEqual(len(self.service.list_notifications("ana")), 2)
        self.assertEqual(self.service.delete_all("ana"), 2)
        self.assertEqual(self.service.list_notifications("ana"), [])

    def test_unknown_notification(self):
        with self.assertRaises(NotFoundError):
            self.service.mark_read("missing")
        with self.assertRaises(NotFoundError):
            self.service.delete_notification("missing")

    def test_in_app_disabled_suppresses_notification(self):
        self.service.update_preferences("ana", categories={"rewards": {"in_app": False}})
        self.assertIsNone(self._notify("Muted"))
        self.assertEqual(self.queue.pending_ids(), [])
        self.assertEqual(self.service.list_notifications("ana"), [])

    def test_preferences_round_trip(self):
        prefs = self.service.update_preferences(
            "ana",
            categories={"social": {"email": False}},
            quiet_hours={"enabled": True, "start_time": "21:30"},
        )
        self.assertFalse(prefs.categories["social"].email)
        self.assertTrue(prefs.quiet_hours.enabled)
        self.assertEqual(prefs.quiet_hours.end_time, "08:00")

        stored = self.service.get_preferences("ana")
        self.assertFalse(stored.categories["social"].email)
        self.assertTrue(stored.categories["missions"].push)
        self.assertEqual(stored.quiet_hours.start_time, "21:30")

    def test_preferences_validation(self):
        with self.assertRaises(ValidationError):
            self.service.update_preferences("ana", categories={"weather": {"push": True}})
        with self.assertRaises(ValidationError):
            self.service.update_preferences("ana", categories={"rewards": {"fax": True}})
        with self.assertRaises(ValidationError):
            self.service.update_preferences("ana", quiet_hours={"start_time": "7pm"})


class PushDispatchTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.queue = InMemoryNotificationQueue()
        self.sender = InMemoryPushSender()
        UserService(self.store).create_user("Ana", user_id="ana", fcm_token="token-ana")
        self.notifier = Notifier(self.store, self.queue)

    def test_push_suppressed_during_quiet_hours(self):
        NotificationService(self.store).update_preferences(
            "ana", quiet_hours={"enabled": True, "start_time": "22:00", "end_time": "08:00"}
        )
        self.notifier.notify(
            "ana", NotificationType.CHECK_IN, "Checked in", "Welcome", now=NOW
        )

        self.assertTrue(dispatch_next(self.store, self.queue, self.sender, NOW))
        self.assertEqual(self.sender.sent, [])

    def test_push_includes_action_link(self):
        notification_id = self.notifier.notify(
            "ana",
            NotificationType.REWARD_REDEEMED,
            "Reward redeemed",
            "Enjoy",
            action_link="/redemptions/r1",
            now=_at(12),
        )

        self.assertTrue(dispatch_next(self.store, self.queue, self.sender, _at(12)))
        self.assertEqual(len(self.sender.sent), 1)
        sent = self.sender.sent[0]
        self.assertEqual(sent["token"], "token-ana")
        self.assertEqual(sent["title"], "Reward redeemed")
        self.assertEqual(sent["data"]["notification_id"], notification_id)
        self.assertEqual(sent["data"]["action_link"], "/redemptions/r1")
        self.assertFalse(dispatch_next(self.store, self.queue, self.sender, _at(12)))

    def test_job_for_other_recipient_is_not_pushed(self):
        notification_id = self.notifier.notify(
            "ana", NotificationType.SYSTEM, "Hello", "Hi", now=_at(12)
        )
        job = self.queue.dequeue(block=False)
        self.assertEqual(job.user_id, "ana")
        self.assertEqual(job.notification_type, NotificationType.SYSTEM)
        self.queue.enqueue(PushJob(notification_id, "mallory", NotificationType.SYSTEM))

        self.assertTrue(dispatch_next(self.store, self.queue, self.sender, _at(12)))
        self.assertEqual(self.sender.sent, [])


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import json
import threading
import unittest
from datetime import datetime, timedelta, timezone

import httpx

from teeds.auth import ClientError, SessionKeeper, SessionTokenCodec, TeedsClient, refresh_delay, token_expiry

SECRET = "teeds-test-signing-secret-" * 3
BASE_URL = "https://contest.test/functions/v1"


class FakeTimer:
    def __init__(self, delay: float, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.callback()


class RefreshDelayTests(unittest.TestCase):
    def setUp(self) -> None:
        self.codec = SessionTokenCodec(SECRET, ttl_seconds=3600)
        self.now = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

    def test_delay_leaves_five_minute_lead(self) -> None:
        token = self.codec.mint("user-1", "student@asu.edu", False, self.now)
        self.assertEqual(token_expiry(token), int(self.now.timestamp()) + 3600)
        self.assertEqual(refresh_delay(token, self.now), 3300.0)

    def test_delay_is_zero_inside_the_lead(self) -> None:
        token = self.codec.mint("user-1", "student@asu.edu", False, self.now)
        self.assertEqual(refresh_delay(token, self.now + timedelta(minutes=58)), 0.0)
        self.assertEqual(refresh_delay(token, self.now + timedelta(hours=2)), 0.0)

    def test_unreadable_token_has_no_delay(self) -> None:
        self.assertIsNone(refresh_delay("not-a-token", self.now))
        self.assertIsNone(token_expiry("a.b.c"))


class TeedsClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.codec = SessionTokenCodec(SECRET, ttl_seconds=3600)
        self.requests: list[tuple[str, dict]] = []
        self.status = 200
        self.reply: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append((request.url.path, json.loads(request.content)))
            return httpx.Response(self.status, json=self.reply)

        self.http = httpx.Client(transport=httpx.MockTransport(handler))
        self.client = TeedsClient(BASE_URL, http_client=self.http)

    def tearDown(self) -> None:
        self.http.close()

    def test_refresh_token_posts_token(self) -> None:
        self.reply = {"ok": True, "token": "new.token.value"}
        self.assertEqual(self.client.refresh_token("old.token.value"), "new.token.value")
        self.assertEqual(self.requests, [("/functions/v1/refresh-token", {"token": "old.token.value"})])

    def test_verify_otp_returns_session(self) -> None:
        self.reply = {"ok": True, "session": {"token": "t.o.k", "user": {"id": "u1"}}}
        session = self.client.verify_otp("student@asu.edu", "042917", fullName="Sun Devil")
        self.assertEqual(session["token"], "t.o.k")
        self.assertEqual(self.requests[0][1]["fullName"], "Sun Devil")

    def test_rsvp_helpers(self) -> None:
        self.reply = {"ok": True, "rsvp": {"will_attend": "yes"}}
        self.assertEqual(self.client.set_rsvp("t.o.k", "yes"), {"will_attend": "yes"})
        self.assertEqual(self.requests[0][1], {"action": "set", "token": "t.o.k", "will_attend": "yes"})
        self.reply = {"ok": True, "rsvp": None}
        self.assertIsNone(self.client.get_rsvp("t.o.k"))

    def test_error_responses_raise_client_error(self) -> None:
        self.status = 401
        self.reply = {"ok": False, "message": "Invalid or expired token"}
        with self.assertRaises(ClientError) as ctx:
            self.client.refresh_token("old.token.value")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.message, "Invalid or expired token")

    def test_transport_failures_raise_client_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(handler)) as http:
            client = TeedsClient(BASE_URL, http_client=http)
            with self.assertRaises(ClientError) as ctx:
                client.request_otp("student@asu.edu")
        self.assertEqual(ctx.exception.status_code, 503)


class SessionKeeperTests(unittest.TestCase):
    def setUp(self) -> None:
        self.codec = SessionTokenCodec(SECRET, ttl_seconds=3600)
        self.now = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)
        self.token = self.codec.mint("user-1", "student@asu.edu", False, self.now)
        self.fresh = self.codec.mint("user-1", "student@asu.edu", False, datetime.now(timezone.utc))
        self.timers: list[FakeTimer] = []
        self.fail = False
        self.posted: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.posted.append(json.loads(request.content)["token"])
            if self.fail:
                return httpx.Response(500, json={"ok": False, "message": "Failed to refresh token"})
            return httpx.Response(200, json={"ok": True, "token": self.fresh})

        self.http = httpx.Client(transport=httpx.MockTransport(handler))
        self.client = TeedsClient(BASE_URL, http_client=self.http)
        self.refreshed: list[str] = []

    def tearDown(self) -> None:
        self.http.close()

    def timer_factory(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def build_keeper(self) -> SessionKeeper:
        return SessionKeeper(self.client, self.token, on_refresh=self.refreshed.append, timer_factory=self.timer_factory)

    def test_schedule_arms_a_single_timer(self) -> None:
        keeper = self.build_keeper()
        self.assertEqual(keeper.schedule(self.now), 3300.0)
        self.assertEqual(keeper.schedule(self.now), 3300.0)

        self.assertEqual(len(self.timers), 2)
        self.assertTrue(self.timers[0].cancelled)
        self.assertTrue(self.timers[1].started)
        self.assertFalse(self.timers[1].cancelled)

    def test_timer_swaps_token_and_rearms(self) -> None:
        keeper = self.build_keeper()
        keeper.schedule(self.now)
        self.timers[0].fire()

        self.assertEqual(keeper.token, self.fresh)
        self.assertEqual(self.refreshed, [self.fresh])
        self.assertEqual(len(self.timers), 2)
        self.assertGreater(self.timers[1].delay, 0)

    def test_failed_refresh_keeps_current_token(self) -> None:
        self.fail = True
        keeper = self.build_keeper()
        with self.assertLogs("teeds.auth.refresh", level="WARNING"):
            self.assertFalse(keeper.refresh_now())
        self.assertEqual(keeper.token, self.token)
        self.assertEqual(self.refreshed, [])

    def test_refresh_reads_token_under_lock(self) -> None:
        keeper = self.build_keeper()
        replacement = self.codec.mint("user-1", "student@asu.edu", False, self.now + timedelta(minutes=1))
        worker = threading.Thread(target=keeper.refresh_now)

        keeper._lock.acquire()
        try:
            worker.start()
            worker.join(timeout=0.2)
            self.assertTrue(worker.is_alive())
            self.assertEqual(self.posted, [])
            keeper.token = replacement
        finally:
            keeper._lock.release()
        worker.join(timeout=5)

        self.assertFalse(worker.is_alive())
        self.assertEqual(self.posted, [replacement])
        self.assertEqual(keeper.token, self.fresh)

    def test_overdue_token_refreshes_immediately(self) -> None:
        keeper = self.build_keeper()
        self.assertEqual(keeper.schedule(self.now + timedelta(minutes=58)), 0.0)
        self.assertEqual(keeper.token, self.fresh)
        self.assertEqual(self.refreshed, [self.fresh])

    def test_cancel_stops_pending_refresh(self) -> None:
        keeper = self.build_keeper()
        keeper.schedule(self.now)
        keeper.cancel()
        self.assertTrue(self.timers[0].cancelled)


if __name__ == "__main__":
    unittest.main()

"""
Fulfillment scheduler tests, plus auto-completion driven by real (short) timers.
"""
import logging
import threading

from conftest import wait_for
from services import FulfillmentScheduler


class TestFulfillmentScheduler:

     def test_action_runs_after_delay_and_timer_is_released(self, scheduler):
          fired = threading.Event()

          scheduler.schedule("WOLF_1", 0.05, fired.set)

          assert "WOLF_1" in scheduler
          assert fired.wait(2)
          assert wait_for(lambda: "WOLF_1" not in scheduler)

     def test_cancel_prevents_firing(self, scheduler):
          fired = threading.Event()
          scheduler.schedule("WOLF_1", 0.2, fired.set)

          assert scheduler.cancel("WOLF_1") is True
          assert scheduler.cancel("WOLF_1") is False
          assert not fired.wait(0.4)

     def test_rescheduling_replaces_the_previous_timer(self, scheduler):
          calls = []
          done = threading.Event()

          scheduler.schedule("WOLF_1", 0.1, lambda: calls.append("first"))
          scheduler.schedule("WOLF_1", 0.15, lambda: (calls.append("second"), done.set()))

          assert done.wait(2)
          assert not wait_for(lambda: "first" in calls, timeout=0.2)
          assert calls == ["second"]
          assert len(scheduler) == 0

     def test_failing_action_is_logged(self, scheduler, caplog):
          def boom():
               raise RuntimeError("kaboom")

          with caplog.at_level(logging.ERROR, logger="services.scheduler"):
               scheduler.schedule("WOLF_1", 0.01, boom)
               assert wait_for(lambda: "WOLF_1" not in scheduler)
               assert wait_for(lambda: "Scheduled fulfillment for WOLF_1 failed" in caplog.text)

     def test_shutdown_cancels_everything_and_refuses_new_timers(self):
          scheduler = FulfillmentScheduler()
          fired = threading.Event()
          scheduler.schedule("WOLF_1", 0.1, fired.set)
          scheduler.schedule("WOLF_2", 0.1, fired.set)

          scheduler.shutdown()
          scheduler.schedule("WOLF_3", 0.01, fired.set)

          assert scheduler.pending() == []
          assert not fired.wait(0.3)

     def test_negative_delay_fires_immediately(self, scheduler):
          fired = threading.Event()
          scheduler.schedule("WOLF_1", -5, fired.set)
          assert fired.wait(1)


class TestAutoCompletion:

     def test_timer_completes_the_order(self, make_lifecycle, place_order, store, notifier):
          manager = make_lifecycle(auto_delay_range=(0.05, 0.1))
          order_id = place_order(manager).order.order_id

          assert wait_for(lambda: store.get(order_id).is_completed)
          order = store.get(order_id)
          assert any(e["message"].startswith("Completed via Auto") for e in order.audit_entries)
          assert len(notifier.emails) == 1

     def test_timer_after_manual_completion_is_harmless(self, make_lifecycle, place_order, store, notifier, scheduler):
          manager = make_lifecycle(auto_delay_range=(0.1, 0.1))
          order_id = place_order(manager).order.order_id
          manager.complete(order_id, "Manual")
          entries = len(store.get(order_id).audit_entries)

          # Fire the auto trigger anyway, as a timer that slipped past cancel would
          manager._auto_complete(order_id, 1)

          assert len(store.get(order_id).audit_entries) == entries
          assert len(notifier.emails) == 1

     def test_email_failure_is_retried(self, make_lifecycle, place_order, store, notifier):
          manager = make_lifecycle(auto_delay_range=(0.05, 0.05), retry_delay=0.05, max_attempts=3)
          notifier.email_failures_left = 1

          order_id = place_order(manager).order.order_id

          assert wait_for(lambda: store.get(order_id).is_completed)
          starts = [e for e in store.get(order_id).audit_entries if "fulfillment started" in e["message"]]
          assert len(starts) == 2
          assert len(notifier.emails) == 1

     def test_gives_up_after_max_attempts(self, make_lifecycle, place_order, store, notifier, scheduler):
          manager = make_lifecycle(auto_delay_range=(0.02, 0.02), retry_delay=0.02, max_attempts=2)
          notifier.fail_email = True

          order_id = place_order(manager).order.order_id

          assert wait_for(lambda: any("Auto delivery failed" in m for m in notifier.messages))
          order = store.get(order_id)
          assert order.status == "fulfilling"
          assert order.scheduled_for is None
          assert order_id not in scheduler
          starts = [e for e in order.audit_entries if "fulfillment started" in e["message"]]
          assert len(starts) == 2

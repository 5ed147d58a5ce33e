# services/scheduler.py
"""
Fulfillment Scheduler - one pending auto-completion timer per order.

Timers are daemon threads, so a pending fulfillment never keeps the process
alive. Timers are not persisted here; the lifecycle manager re-arms them from
the orders' scheduled_for column on startup.
"""
import logging
import threading
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class FulfillmentScheduler:
     """Process-wide registry of pending completion timers keyed by order_id."""

     def __init__(self, timer_factory: Callable[..., threading.Timer] = threading.Timer):
          self._timer_factory = timer_factory
          self._timers: Dict[str, threading.Timer] = {}
          self._lock = threading.Lock()
          self._closed = False

     def schedule(self, order_id: str, delay: float, action: Callable[[], None]) -> None:
          """
          Run action after delay seconds, replacing any timer already armed
          for this order.
          """
          delay = max(0.0, float(delay))
          timer = self._timer_factory(delay, self._fire, args=(order_id, action))
          timer.daemon = True
          with self._lock:
               if self._closed:
                    logger.warning("Scheduler is shut down; not scheduling %s", order_id)
                    return
               previous = self._timers.pop(order_id, None)
               if previous is not None:
                    previous.cancel()
               self._timers[order_id] = timer
               timer.start()
          logger.info("Auto-completion for %s scheduled in %.0fs", order_id, delay)

     def cancel(self, order_id: str) -> bool:
          """Disarm the order's timer. Returns False when nothing was pending."""
          with self._lock:
               timer = self._timers.pop(order_id, None)
          if timer is None:
               return False
          timer.cancel()
          logger.info("Auto-completion for %s cancelled", order_id)
          return True

     def pending(self) -> List[str]:
          with self._lock:
               return sorted(self._timers)

     def __contains__(self, order_id: str) -> bool:
          with self._lock:
               return order_id in self._timers

     def __len__(self) -> int:
          with self._lock:
               return len(self._timers)

     def shutdown(self) -> None:
          """Cancel every pending timer and refuse new ones."""
          with self._lock:
               self._closed = True
               timers = list(self._timers.values())
               self._timers.clear()
          for timer in timers:
               timer.cancel()
          if timers:
               logger.info("Scheduler stopped with %d pending timer(s)", len(timers))

     def _fire(self, order_id: str, action: Callable[[], None]) -> None:
          with self._lock:
               current = self._timers.get(order_id)
               if current is threading.current_thread():
                    del self._timers[order_id]
          try:
               action()
          except Exception:
               logger.exception("Scheduled fulfillment for %s failed", order_id)

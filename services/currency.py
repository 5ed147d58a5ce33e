# services/currency.py
"""
USD -> ILS rate provider.

Holds the last known rate and refreshes it on a background thread. Checkout
never waits on the network: current_rate() always returns the cached value,
which starts at the configured fallback.
"""
import logging
import threading
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

import requests

import config
from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class ExchangeRateProvider:
     """Cached USD->ILS rate with a periodic refresh lifecycle."""

     def __init__(
          self,
          url: str = config.EXCHANGE_RATE_URL,
          fallback_rate: Decimal = config.FALLBACK_USD_ILS_RATE,
          refresh_interval: float = config.RATE_REFRESH_SECONDS,
          timeout: float = config.RATE_TIMEOUT_SECONDS,
          http: Optional[requests.Session] = None,
     ):
          self.url = url
          self.fallback_rate = Decimal(fallback_rate)
          self.refresh_interval = refresh_interval
          self.timeout = timeout
          self._http = http or requests.Session()
          self._rate = self.fallback_rate
          self._lock = threading.Lock()
          self._stop = threading.Event()
          self._thread: Optional[threading.Thread] = None

     def current_rate(self) -> Decimal:
          with self._lock:
               return self._rate

     def fetch(self) -> Decimal:
          """
          Fetch the live rate.

          Raises:
               UpstreamUnavailable: On transport errors, non-2xx or a malformed body.
          """
          try:
               response = self._http.get(self.url, timeout=self.timeout)
               response.raise_for_status()
               rate = Decimal(str(response.json()["rates"]["ILS"]))
          except (requests.RequestException, KeyError, TypeError, ValueError, InvalidOperation) as e:
               raise UpstreamUnavailable(f"Exchange rate lookup failed: {e}") from e
          if rate <= 0:
               raise UpstreamUnavailable(f"Exchange rate lookup returned {rate}")
          return rate

     def refresh(self) -> Decimal:
          """Update the cached rate, keeping the last known one on failure."""
          try:
               rate = self.fetch()
          except UpstreamUnavailable as e:
               logger.warning("%s; keeping rate %s", e, self.current_rate())
               return self.current_rate()
          with self._lock:
               self._rate = rate
          logger.info("USD/ILS rate updated to %s", rate)
          return rate

     def to_usd(self, amount_ils: Decimal) -> Decimal:
          return (Decimal(amount_ils) / self.current_rate()).quantize(CENT, rounding=ROUND_HALF_UP)

     def to_ils(self, amount_usd: Decimal) -> Decimal:
          return (Decimal(amount_usd) * self.current_rate()).quantize(CENT, rounding=ROUND_HALF_UP)

     def start(self) -> None:
          """Refresh now and then every refresh_interval seconds on a daemon thread."""
          if self._thread is not None and self._thread.is_alive():
               return
          self._stop.clear()
          self._thread = threading.Thread(target=self._run, name="rate-refresh", daemon=True)
          self._thread.start()

     def stop(self) -> None:
          self._stop.set()
          if self._thread is not None:
               self._thread.join(timeout=self.timeout + 1)
               self._thread = None

     def _run(self) -> None:
          while not self._stop.is_set():
               self.refresh()
               self._stop.wait(self.refresh_interval)

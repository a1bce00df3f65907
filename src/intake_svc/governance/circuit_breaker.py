"""Circuit breaker for remote registries.

A registry that keeps failing is short-circuited for a while, so submissions
and approvals get an immediate "unavailable" instead of waiting out another
timeout against it.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"  # letting probe calls through


class CircuitBreakerOpen(Exception):
    """Raised when calls to a registry are being short-circuited."""
    def __init__(self, service_key: str, retry_after_seconds: float):
        super().__init__(f"Circuit breaker open for {service_key}")
        self.service_key = service_key
        self.retry_after_seconds = retry_after_seconds


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""
    enabled: bool = True
    failure_threshold: int = 5      # consecutive failures that open the circuit
    success_threshold: int = 2      # probe successes that close it again
    timeout_seconds: float = 30.0   # time spent open before probing


@dataclass
class RegistryHealth:
    """Health of one registry as seen by the breaker."""
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    probe_successes: int = 0
    opened_at: float = 0.0

    def open(self, now: float) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = now
        self.probe_successes = 0


@dataclass
class CircuitBreaker:
    """Per-registry breaker keyed by service key (e.g. "registry:employees")."""
    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)

    _health: dict[str, RegistryHealth] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def check(self, service_key: str) -> None:
        """
        Raise unless a call to the registry may proceed.

        An open circuit whose timeout has elapsed moves to half-open and lets
        the call through as a probe.

        Raises:
            CircuitBreakerOpen: If the circuit is open for this registry
        """
        if not self.config.enabled:
            return

        with self._lock:
            health = self._health.get(service_key)
            if health is None or health.state != CircuitState.OPEN:
                return

            remaining = self.config.timeout_seconds - (time.monotonic() - health.opened_at)
            if remaining > 0:
                raise CircuitBreakerOpen(service_key, remaining)

            health.state = CircuitState.HALF_OPEN
            health.probe_successes = 0
            logger.info(f"Probing {service_key} after {self.config.timeout_seconds}s open")

    def record(self, service_key: str, success: bool) -> None:
        """Record the outcome of a call to a registry."""
        if not self.config.enabled:
            return

        with self._lock:
            if success:
                self._on_success(service_key)
            else:
                self._on_failure(service_key)

    def record_success(self, service_key: str) -> None:
        self.record(service_key, True)

    def record_failure(self, service_key: str) -> None:
        self.record(service_key, False)

    def _on_success(self, service_key: str) -> None:
        health = self._health.get(service_key)
        if health is None:
            return
        health.consecutive_failures = 0
        if health.state == CircuitState.HALF_OPEN:
            health.probe_successes += 1
            if health.probe_successes >= self.config.success_threshold:
                health.state = CircuitState.CLOSED
                logger.info(f"Circuit for {service_key} closed")

    def _on_failure(self, service_key: str) -> None:
        health = self._health.setdefault(service_key, RegistryHealth())
        health.consecutive_failures += 1

        if health.state == CircuitState.HALF_OPEN or (
            health.state == CircuitState.CLOSED
            and health.consecutive_failures >= self.config.failure_threshold
        ):
            health.open(time.monotonic())
            logger.warning(
                f"Circuit for {service_key} opened after "
                f"{health.consecutive_failures} consecutive failure(s)"
            )

    def state_of(self, service_key: str) -> CircuitState:
        with self._lock:
            health = self._health.get(service_key)
            return health.state if health else CircuitState.CLOSED

    def snapshot(self) -> dict[str, str]:
        """State of every registry that has ever failed."""
        with self._lock:
            return {key: health.state.value for key, health in self._health.items()}

    @property
    def stats(self) -> dict:
        with self._lock:
            states = {s.value: 0 for s in CircuitState}
            for health in self._health.values():
                states[health.state.value] += 1
            return {
                "enabled": self.config.enabled,
                "tracked_services": len(self._health),
                "states": states,
            }

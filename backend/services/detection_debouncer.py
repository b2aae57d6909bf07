"""Auto-record decision engine: debounce a noisy "court in frame" signal."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from models.detection import DetectionSample, RecordingDecision
from services.settings import get_settle_delay
from services.timers import DelayedAction

logger = logging.getLogger(__name__)

DecisionListener = Callable[[RecordingDecision], None]


class DetectionDebouncer:
    """
    Turn a jittery stream of boolean court detections into start/stop decisions.

    A flip away from the last stable value arms a settle timer; the flip is only
    adopted if nothing cancels the timer before it fires. Samples that agree with
    the stable value cancel the pending timer, so a brief misdetection never
    reaches the recorder.

    - observe() always returns NoOp; real decisions come from the settle timer
      and are delivered to ``on_decision``.
    - manual_start()/manual_stop() act immediately and clear any pending timer.
    """

    def __init__(
        self,
        *,
        settle_delay: float | None = None,
        on_decision: DecisionListener | None = None,
        auto_record_enabled: bool = True,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._settle_delay = settle_delay if settle_delay is not None else get_settle_delay()
        self._listeners: list[DecisionListener] = [on_decision] if on_decision else []
        self._loop = loop
        self._auto_record_enabled = auto_record_enabled
        self._last_stable_signal = False
        self._is_recording = False
        self._pending_signal: bool | None = None
        self._pending_timer: DelayedAction | None = None
        self._last_decision = RecordingDecision.NO_OP

    @property
    def settle_delay(self) -> float:
        return self._settle_delay

    @property
    def last_stable_signal(self) -> bool:
        return self._last_stable_signal

    @property
    def pending_signal(self) -> bool | None:
        return self._pending_signal

    @property
    def pending_since(self) -> float | None:
        """Loop time at which the pending settle timer was armed."""
        return self._pending_timer.armed_at if self._pending_timer is not None else None

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def auto_record_enabled(self) -> bool:
        return self._auto_record_enabled

    @property
    def last_decision(self) -> RecordingDecision:
        return self._last_decision

    def add_listener(self, listener: DecisionListener) -> None:
        self._listeners.append(listener)

    def observe(self, sample: DetectionSample | bool) -> RecordingDecision:
        value = sample.is_court if isinstance(sample, DetectionSample) else bool(sample)

        if not self._auto_record_enabled:
            self._clear_pending()
            return RecordingDecision.NO_OP

        if value == self._last_stable_signal:
            if self._pending_signal is not None:
                logger.debug("[debouncer] flip to %s withdrawn before settling", self._pending_signal)
            self._clear_pending()
            return RecordingDecision.NO_OP

        if self._pending_signal == value:
            # Same new value again: keep the first clock running.
            return RecordingDecision.NO_OP

        self._clear_pending()
        self._pending_signal = value
        self._pending_timer = DelayedAction(
            self._settle_delay,
            lambda: self._settle(value),
            loop=self._loop,
            name="settle-timer",
        ).start()
        logger.debug("[debouncer] armed settle timer for %s (%.2fs)", value, self._settle_delay)
        return RecordingDecision.NO_OP

    def set_auto_record(self, enabled: bool) -> None:
        """Enable or disable auto-record. Never emits a decision."""
        self._clear_pending()
        self._auto_record_enabled = enabled
        logger.info("[debouncer] auto-record %s", "enabled" if enabled else "disabled")

    def manual_start(self) -> RecordingDecision:
        return self._manual(recording=True)

    def manual_stop(self) -> RecordingDecision:
        return self._manual(recording=False)

    def close(self) -> None:
        self._clear_pending()

    def _manual(self, *, recording: bool) -> RecordingDecision:
        self._clear_pending()
        self._is_recording = recording
        decision = RecordingDecision.START_RECORDING if recording else RecordingDecision.STOP_RECORDING
        self._last_decision = decision
        logger.info("[debouncer] manual %s", decision.value)
        return decision

    def _clear_pending(self) -> None:
        if self._pending_timer is not None:
            self._pending_timer.cancel()
        self._pending_timer = None
        self._pending_signal = None

    def _settle(self, value: bool) -> None:
        self._pending_timer = None
        self._pending_signal = None
        self._last_stable_signal = value

        if value and not self._is_recording:
            decision = RecordingDecision.START_RECORDING
            self._is_recording = True
        elif not value and self._is_recording:
            decision = RecordingDecision.STOP_RECORDING
            self._is_recording = False
        else:
            decision = RecordingDecision.NO_OP

        self._last_decision = decision
        logger.info("[debouncer] settled on is_court=%s -> %s", value, decision.value)
        for listener in list(self._listeners):
            try:
                listener(decision)
            except Exception:  # noqa: BLE001
                logger.error("[debouncer] decision listener failed", exc_info=True)

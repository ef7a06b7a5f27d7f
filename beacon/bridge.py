"""
Caller-side bridge to the dispatch loop.

Requests return concurrent.futures.Future objects immediately; a receiver
thread matches responses to pending futures by correlation id. When no
worker is running the bridge computes inline and returns a completed future,
so callers see the same results and errors either way.

Use asyncio.wrap_future (or the *_async helpers) from coroutine code.
"""

import asyncio
import itertools
import logging
import threading
from collections.abc import Hashable
from concurrent.futures import Future
from typing import Dict, Iterable, Mapping, Optional, Union

from beacon.config import BeaconConfig
from beacon.dispatch import DispatchLoop
from beacon.errors import AnalyticsError, ProtocolError
from beacon.insights import InsightsResult
from beacon.protocol import (
    ErrorResponse,
    GenerateInsightsRequest,
    InsightsPayload,
    PredictRiskRequest,
    Request,
    Response,
    correlation_of,
    decode_response,
)
from beacon.records import CheckIn, MeditationSession, MeetingAttendance, RiskAssessmentInput
from beacon.risk import RiskAssessmentResult

logger = logging.getLogger("beacon.bridge")

_STOP = object()


class AnalyticsBridge:
    """Issues requests to one DispatchLoop and correlates its responses."""

    def __init__(self, loop: Optional[DispatchLoop] = None, cfg: Optional[BeaconConfig] = None):
        self.cfg = cfg or (loop.cfg if loop is not None else BeaconConfig())
        self.loop = loop
        self._pending: Dict[int, Future] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._receiver: Optional[threading.Thread] = None

    # -- Lifecycle ------------------------------------------------------------

    @classmethod
    def open(cls, cfg: Optional[BeaconConfig] = None) -> "AnalyticsBridge":
        """Start a dedicated dispatch loop and a bridge attached to it."""
        return cls(DispatchLoop(cfg).start()).start()

    @property
    def offloaded(self) -> bool:
        return self.loop is not None and self.loop.running

    def start(self) -> "AnalyticsBridge":
        if self.loop is None or self._receiver is not None:
            return self
        self._receiver = threading.Thread(
            target=self._receive, name=f"{self.cfg.worker.thread_name}-bridge", daemon=True
        )
        self._receiver.start()
        return self

    def close(self) -> None:
        """Stop the receiver, stop the loop, cancel anything still pending."""
        if self.loop is not None:
            self.loop.stop()
        if self._receiver is not None:
            self.loop.outbox.put(_STOP)
            self._receiver.join(self.cfg.worker.join_timeout)
            self._receiver = None
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            future.cancel()

    def __enter__(self) -> "AnalyticsBridge":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- Requests -------------------------------------------------------------

    def predict_risk(self, data: Union[RiskAssessmentInput, Mapping]) -> "Future[RiskAssessmentResult]":
        if isinstance(data, Mapping):
            try:
                data = RiskAssessmentInput.from_dict(data)
            except ProtocolError as exc:
                future: Future = Future()
                future.set_exception(AnalyticsError(str(exc), kind="protocol"))
                return future
        return self._submit(PredictRiskRequest(payload=data, correlation_id=next(self._ids)))

    def generate_insights(
        self,
        check_ins: Iterable[CheckIn] = (),
        meetings: Iterable[MeetingAttendance] = (),
        meditations: Iterable[MeditationSession] = (),
    ) -> "Future[InsightsResult]":
        request = GenerateInsightsRequest(
            payload=InsightsPayload(
                check_ins=tuple(check_ins),
                meetings=tuple(meetings),
                meditations=tuple(meditations),
            ),
            correlation_id=next(self._ids),
        )
        return self._submit(request)

    async def predict_risk_async(self, data: Union[RiskAssessmentInput, Mapping]) -> RiskAssessmentResult:
        return await asyncio.wrap_future(self.predict_risk(data))

    async def generate_insights_async(self, check_ins=(), meetings=(), meditations=()) -> InsightsResult:
        return await asyncio.wrap_future(self.generate_insights(check_ins, meetings, meditations))

    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    # -- Internals ------------------------------------------------------------

    def _submit(self, request: Request) -> Future:
        future: Future = Future()

        if not self.offloaded or self._receiver is None:
            # No worker: same handler, same error semantics, caller thread.
            handler = self.loop if self.loop is not None else DispatchLoop(self.cfg)
            self._settle(future, handler.handle(request))
            return future

        with self._lock:
            self._pending[request.correlation_id] = future
        self.loop.post(request.to_message())
        return future

    def _receive(self) -> None:
        while True:
            message = self.loop.outbox.get()
            if message is _STOP:
                break
            try:
                self._deliver(message)
            except Exception:
                logger.exception("Bridge receiver failed on response %r", correlation_of(message))

    def _deliver(self, message) -> None:
        try:
            response = decode_response(message)
        except ProtocolError as exc:
            logger.error("Undecodable worker response: %s", exc)
            future = self._claim(correlation_of(message))
            if future is not None and future.set_running_or_notify_cancel():
                future.set_exception(AnalyticsError(str(exc), kind="protocol"))
            return

        future = self._claim(response.correlation_id)
        if future is None:
            logger.warning("Dropping response with unknown id %r", response.correlation_id)
            return
        self._settle(future, response)

    def _claim(self, correlation_id) -> Optional[Future]:
        if not isinstance(correlation_id, Hashable):
            return None
        with self._lock:
            return self._pending.pop(correlation_id, None)

    @staticmethod
    def _settle(future: Future, response: Response) -> None:
        if not future.set_running_or_notify_cancel():
            return
        if isinstance(response, ErrorResponse):
            future.set_exception(response.error.to_exception())
        else:
            future.set_result(response.result)

"""
Dispatch loop: the single background context that runs analytics.

One daemon thread drains the inbox in FIFO order, answers every message with
exactly one response on the outbox, and survives any failure raised while
handling a message. handle() is usable on its own, without the thread.
"""

import logging
import queue
import threading
import traceback
from typing import Any, Dict, Optional, Union

from beacon import insights, risk
from beacon.config import BeaconConfig
from beacon.errors import ProtocolError
from beacon.protocol import (
    ErrorResponse,
    Failure,
    GenerateInsightsRequest,
    GenerateInsightsResponse,
    PredictRiskRequest,
    PredictRiskResponse,
    Request,
    Response,
    correlation_of,
    decode_request,
)

logger = logging.getLogger("beacon.dispatch")

_STOP = object()


class DispatchLoop:
    """Owns the inbox/outbox channels and the worker thread."""

    def __init__(
        self,
        cfg: Optional[BeaconConfig] = None,
        inbox: Optional[queue.Queue] = None,
        outbox: Optional[queue.Queue] = None,
    ):
        self.cfg = cfg or BeaconConfig()
        self.inbox = inbox if inbox is not None else queue.Queue(self.cfg.worker.inbox_maxsize)
        self.outbox = outbox if outbox is not None else queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._total_handled = 0
        self._total_failed = 0

    # -- Core operation -------------------------------------------------------

    def handle(self, request: Union[Request, Dict[str, Any]]) -> Response:
        """Answer one request. Never raises."""
        correlation_id = correlation_of(request)
        try:
            if not isinstance(request, (PredictRiskRequest, GenerateInsightsRequest)):
                request = decode_request(request)
            logger.debug("Handling %s (id=%r)", request.type, correlation_id)

            if isinstance(request, PredictRiskRequest):
                response: Response = PredictRiskResponse(
                    result=risk.predict(request.payload, self.cfg),
                    correlation_id=correlation_id,
                )
            else:
                payload = request.payload
                response = GenerateInsightsResponse(
                    result=insights.generate(
                        payload.check_ins, payload.meetings, payload.meditations, self.cfg
                    ),
                    correlation_id=correlation_id,
                )
        except Exception as exc:
            response = self._failure(exc, correlation_id)

        with self._lock:
            self._total_handled += 1
            if isinstance(response, ErrorResponse):
                self._total_failed += 1
        return response

    def _failure(self, exc: Exception, correlation_id: Any) -> ErrorResponse:
        kind = "protocol" if isinstance(exc, ProtocolError) else "computation"
        message = str(exc) or type(exc).__name__
        logger.warning("Request failed (%s, id=%r): %s", kind, correlation_id, message)
        return ErrorResponse(
            error=Failure(message=message, trace=traceback.format_exc(), kind=kind),
            correlation_id=correlation_id,
        )

    def process(self, message: Any) -> Dict[str, Any]:
        """handle() plus wire encoding; always returns a wire response."""
        response = self.handle(message)
        try:
            return response.to_message()
        except Exception as exc:
            if not isinstance(response, ErrorResponse):
                with self._lock:
                    self._total_failed += 1
            failure = self._failure(exc, correlation_of(message))
        try:
            return failure.to_message()
        except Exception:
            # The id itself may not be encodable.
            return ErrorResponse(error=failure.error).to_message()

    # -- Thread lifecycle -----------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "DispatchLoop":
        if self.running:
            return self
        self._thread = threading.Thread(
            target=self._run, name=self.cfg.worker.thread_name, daemon=True
        )
        self._thread.start()
        logger.info("Dispatch loop '%s' started", self.cfg.worker.thread_name)
        return self

    def _run(self) -> None:
        while True:
            message = self.inbox.get()
            if message is _STOP:
                break
            self.outbox.put(self.process(message))

    def post(self, message: Dict[str, Any]) -> None:
        """Enqueue a wire request without waiting for its answer."""
        self.inbox.put(message)

    def stop(self, wait: bool = True) -> None:
        if self._thread is None:
            return
        self.inbox.put(_STOP)
        if wait:
            self._thread.join(self.cfg.worker.join_timeout)
        self._thread = None
        logger.info("Dispatch loop '%s' stopped", self.cfg.worker.thread_name)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "name": self.cfg.worker.thread_name,
                "running": self.running,
                "pending": self.inbox.qsize(),
                "handled": self._total_handled,
                "failed": self._total_failed,
            }

    def __enter__(self) -> "DispatchLoop":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

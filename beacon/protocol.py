"""
Offload protocol: tagged request/response envelopes and their wire form.

Wire messages are plain dicts so they can cross any channel:

    request   {"type": "PREDICT_RISK" | "GENERATE_INSIGHTS", "payload": {...}, "id": ...}
    response  {"type": "PREDICT_RISK_RESULT" | "GENERATE_INSIGHTS_RESULT" | "ERROR",
               "payload": {...}, "id": ...}

Each tag is paired with exactly one payload type; the unions below are
discriminated on `type`. `id` is an optional correlation token that the
worker echoes back unchanged.
"""

from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import Field, TypeAdapter, ValidationError, model_serializer

from beacon.errors import AnalyticsError, ProtocolError
from beacon.insights import InsightsResult
from beacon.records import (
    CheckIn,
    MeditationSession,
    MeetingAttendance,
    RiskAssessmentInput,
    WireModel,
    describe_validation_error,
)
from beacon.risk import RiskAssessmentResult


REQUEST_TYPES = ("PREDICT_RISK", "GENERATE_INSIGHTS")
RESPONSE_TYPES = ("PREDICT_RISK_RESULT", "GENERATE_INSIGHTS_RESULT", "ERROR")


class Envelope(WireModel):
    """Common envelope: the tag lives on each subclass, `id` lives here."""

    correlation_id: Any = Field(None, alias="id")

    @model_serializer(mode="wrap")
    def _omit_missing_id(self, handler) -> Dict[str, Any]:
        message = handler(self)
        if message.get("id") is None:
            message.pop("id", None)
        return message

    def to_message(self) -> Dict[str, Any]:
        return self.to_dict()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class InsightsPayload(WireModel):
    check_ins: Tuple[CheckIn, ...] = ()
    meetings: Tuple[MeetingAttendance, ...] = ()
    meditations: Tuple[MeditationSession, ...] = ()


class PredictRiskRequest(Envelope):
    type: Literal["PREDICT_RISK"] = "PREDICT_RISK"
    payload: RiskAssessmentInput


class GenerateInsightsRequest(Envelope):
    type: Literal["GENERATE_INSIGHTS"] = "GENERATE_INSIGHTS"
    payload: InsightsPayload = Field(default_factory=InsightsPayload)


Request = Annotated[
    Union[PredictRiskRequest, GenerateInsightsRequest],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class PredictRiskResponse(Envelope):
    type: Literal["PREDICT_RISK_RESULT"] = "PREDICT_RISK_RESULT"
    result: RiskAssessmentResult = Field(alias="payload")


class GenerateInsightsResponse(Envelope):
    type: Literal["GENERATE_INSIGHTS_RESULT"] = "GENERATE_INSIGHTS_RESULT"
    result: InsightsResult = Field(alias="payload")


class Failure(WireModel):
    """Failure descriptor carried by ERROR responses."""

    message: str = "unknown error"
    trace: Optional[str] = None
    kind: Literal["protocol", "computation"] = "computation"

    def to_exception(self) -> AnalyticsError:
        return AnalyticsError(self.message, trace=self.trace, kind=self.kind)


class ErrorResponse(Envelope):
    type: Literal["ERROR"] = "ERROR"
    error: Failure = Field(alias="payload")


Response = Annotated[
    Union[PredictRiskResponse, GenerateInsightsResponse, ErrorResponse],
    Field(discriminator="type"),
]

_requests = TypeAdapter(Request)
_responses = TypeAdapter(Response)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def correlation_of(message: Any) -> Any:
    """Best-effort read of a message's correlation id (None when unreadable)."""
    if isinstance(message, Mapping):
        return message.get("id")
    return getattr(message, "correlation_id", None)


def _decode(adapter: TypeAdapter, message: Any, known: Tuple[str, ...], kind: str):
    if not isinstance(message, Mapping):
        raise ProtocolError(f"{kind} must be an object, got {type(message).__name__}")
    tag = message.get("type")
    if tag not in known:
        raise ProtocolError(f"Unknown worker {kind.lower()} type: {tag!r}")
    try:
        return adapter.validate_python(dict(message))
    except ValidationError as exc:
        raise ProtocolError(f"Malformed {tag} {kind.lower()}: {describe_validation_error(exc)}") from exc


def decode_request(message: Any) -> Union[PredictRiskRequest, GenerateInsightsRequest]:
    """
    Turn a wire message into a typed request.

    Raises ProtocolError on a non-object message, an unknown tag, or a
    payload that does not match the tag's shape.
    """
    return _decode(_requests, message, REQUEST_TYPES, "Message")


def decode_response(message: Any) -> Union[PredictRiskResponse, GenerateInsightsResponse, ErrorResponse]:
    """Switch on the status tag and rebuild the typed response."""
    return _decode(_responses, message, RESPONSE_TYPES, "Response")

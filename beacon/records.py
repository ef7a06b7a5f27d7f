"""
Immutable record types: the raw historical inputs to both analytics.

Records are produced by the interactive side and read-only everywhere else.
Every type is a frozen pydantic model whose wire form uses camelCase keys.
Decoding only checks shape; value ranges are checked by the analytics (see
validate_* helpers) so that they surface as computation errors rather than
protocol errors.
"""

from typing import Annotated, Any, Dict, Iterable, Optional, Tuple, Union

import pandas as pd
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from beacon.errors import ComputationError, ProtocolError


MOOD_RANGE = (1.0, 5.0)
HALT_RANGE = (1.0, 10.0)
INTENSITY_RANGE = (1.0, 10.0)

HALT_FIELDS = ("hungry", "angry", "lonely", "tired")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def parse_timestamp(value: Any, field_name: str = "date") -> pd.Timestamp:
    """Parse an ISO string / datetime into a naive-UTC Timestamp."""
    if value is None:
        raise ProtocolError(f"Missing required field: {field_name}")
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Invalid timestamp in '{field_name}': {value!r}") from exc
    if pd.isna(ts):
        raise ProtocolError(f"Invalid timestamp in '{field_name}': {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def _coerce_timestamp(value: Any) -> pd.Timestamp:
    return parse_timestamp(value, "timestamp")


Timestamp = Annotated[
    pd.Timestamp,
    BeforeValidator(_coerce_timestamp),
    PlainSerializer(lambda ts: ts.isoformat(), return_type=str),
]

RecordId = Union[StrictInt, StrictStr]


def describe_validation_error(exc: ValidationError) -> str:
    """One line per failing location, e.g. 'checkIns.0.date: Field required'."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}"
        for err in exc.errors()
    )


class WireModel(BaseModel):
    """Base for everything that crosses the worker boundary."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    @classmethod
    def from_dict(cls, data: Any):
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ProtocolError(
                f"Malformed {cls.__name__}: {describe_validation_error(exc)}"
            ) from exc

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _check_range(value: float, bounds: Tuple[float, float], what: str) -> None:
    lo, hi = bounds
    if not lo <= value <= hi:
        raise ComputationError(f"{what} out of range [{lo:g}, {hi:g}]: {value:g}")


# ---------------------------------------------------------------------------
# Record types
# ---------------------------------------------------------------------------

class HaltCheck(WireModel):
    """Hungry / Angry / Lonely / Tired self-assessment, each 1-10."""

    hungry: StrictFloat
    angry: StrictFloat
    lonely: StrictFloat
    tired: StrictFloat

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.hungry, self.angry, self.lonely, self.tired)


class CheckIn(WireModel):
    id: RecordId
    timestamp: Timestamp = Field(alias="date")
    mood: Optional[StrictFloat] = None
    halt: Optional[HaltCheck] = None
    tags: Tuple[str, ...] = ()
    notes: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _missing_tags(cls, value: Any) -> Any:
        return () if value is None else value

    @field_validator("tags")
    @classmethod
    def _sorted_tags(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(sorted(value))


class Craving(WireModel):
    id: RecordId
    timestamp: Timestamp = Field(alias="date")
    intensity: StrictFloat
    trigger: str = ""
    overcame: StrictBool
    coping_strategy: Optional[str] = None


class MeetingAttendance(WireModel):
    id: RecordId
    timestamp: Timestamp = Field(alias="date")
    duration_minutes: StrictFloat = Field(60.0, alias="duration")
    category: str = Field(alias="type")
    location: Optional[str] = None


class MeditationSession(WireModel):
    id: RecordId
    timestamp: Timestamp = Field(alias="date")
    duration_minutes: StrictFloat = Field(alias="duration")
    technique: str = Field(alias="type")


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

def canonical_order(records: Iterable) -> list:
    """
    Sort records so results never depend on input order.

    (timestamp, id) decides almost always; the full repr breaks the remaining
    ties (same stamp and id, or ids 1 and "1").
    """
    return sorted(records, key=lambda r: (r.timestamp, str(r.id), repr(r)))


class RiskAssessmentInput(WireModel):
    """
    Snapshot of history the caller assembles before requesting a prediction.

    `as_of` anchors every window. When absent, the latest record timestamp is
    used, so the prediction never depends on the wall clock.
    """

    check_ins: Tuple[CheckIn, ...] = ()
    cravings: Tuple[Craving, ...] = ()
    meetings: Tuple[MeetingAttendance, ...] = ()
    meditations: Tuple[MeditationSession, ...] = ()
    sobriety_date: Optional[Timestamp] = None
    as_of: Optional[Timestamp] = None

    @field_validator("check_ins", "cravings", "meetings", "meditations", mode="before")
    @classmethod
    def _missing_collection(cls, value: Any) -> Any:
        return () if value is None else value

    def all_records(self) -> list:
        return [*self.check_ins, *self.cravings, *self.meetings, *self.meditations]

    def reference_time(self) -> Optional[pd.Timestamp]:
        if self.as_of is not None:
            return self.as_of
        stamps = [r.timestamp for r in self.all_records()]
        return max(stamps) if stamps else None


# ---------------------------------------------------------------------------
# Range validation (computation errors)
# ---------------------------------------------------------------------------

def validate_check_ins(check_ins: Iterable[CheckIn]) -> None:
    for c in check_ins:
        if c.mood is not None:
            _check_range(c.mood, MOOD_RANGE, f"checkIn {c.id} mood")
        if c.halt is not None:
            for name, value in zip(HALT_FIELDS, c.halt.as_tuple()):
                _check_range(value, HALT_RANGE, f"checkIn {c.id} halt.{name}")


def validate_cravings(cravings: Iterable[Craving]) -> None:
    for c in cravings:
        _check_range(c.intensity, INTENSITY_RANGE, f"craving {c.id} intensity")


def validate_durations(records: Iterable, kind: str) -> None:
    for r in records:
        if r.duration_minutes < 0:
            raise ComputationError(f"{kind} {r.id} has negative duration: {r.duration_minutes:g}")

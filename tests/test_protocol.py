from beacon.errors import AnalyticsError, ProtocolError
from beacon.insights import generate
from beacon.protocol import (
    ErrorResponse,
    Failure,
    GenerateInsightsRequest,
    GenerateInsightsResponse,
    InsightsPayload,
    PredictRiskRequest,
    PredictRiskResponse,
    correlation_of,
    decode_request,
    decode_response,
)
from beacon.records import RiskAssessmentInput
from beacon.risk import predict
from tests.fixtures import mixed_week, steady_history


def test_unknown_tag_is_protocol_error():
    for message in ({"type": "UNKNOWN"}, {"payload": {}}, {"type": None}):
        try:
            decode_request(message)
            raise AssertionError(f"Should have raised ProtocolError for {message}")
        except ProtocolError:
            pass


def test_non_object_message_is_protocol_error():
    try:
        decode_request(["PREDICT_RISK"])
        raise AssertionError("Should have raised ProtocolError")
    except ProtocolError:
        pass


def test_decode_predict_risk():
    request = decode_request({"type": "PREDICT_RISK", "payload": {"checkIns": []}, "id": 3})
    assert isinstance(request, PredictRiskRequest)
    assert request.payload == RiskAssessmentInput()
    assert request.correlation_id == 3


def test_decode_generate_insights_requires_object_payload():
    try:
        decode_request({"type": "GENERATE_INSIGHTS", "payload": [1, 2]})
        raise AssertionError("Should have raised ProtocolError")
    except ProtocolError:
        pass


def test_insights_request_survives_wire_encoding():
    check_ins, meetings, meditations = mixed_week()
    request = GenerateInsightsRequest(
        payload=InsightsPayload(
            check_ins=tuple(check_ins), meetings=tuple(meetings), meditations=tuple(meditations),
        ),
        correlation_id="abc",
    )
    assert decode_request(request.to_message()) == request


def test_payload_shape_follows_status_tag():
    risk = PredictRiskResponse(result=predict(steady_history()), correlation_id=1).to_message()
    assert risk["type"] == "PREDICT_RISK_RESULT"
    assert {"score", "level", "factors"} <= set(risk["payload"])

    insights = GenerateInsightsResponse(result=generate(*mixed_week()), correlation_id=2).to_message()
    assert insights["type"] == "GENERATE_INSIGHTS_RESULT"
    assert set(insights["payload"]) == {"insights"}

    error = ErrorResponse(error=Failure(message="boom"), correlation_id=3).to_message()
    assert error["type"] == "ERROR"
    assert error["payload"]["message"] == "boom"


def test_correlation_id_omitted_when_absent():
    message = ErrorResponse(error=Failure(message="boom")).to_message()
    assert "id" not in message


def test_decode_response_round_trip():
    response = PredictRiskResponse(result=predict(steady_history()), correlation_id=9)
    assert decode_response(response.to_message()) == response


def test_error_response_becomes_analytics_error():
    response = decode_response({"type": "ERROR", "payload": {"message": "bad", "kind": "protocol"}})
    assert isinstance(response, ErrorResponse)
    exc = response.error.to_exception()
    assert isinstance(exc, AnalyticsError)
    assert exc.message == "bad" and exc.kind == "protocol" and exc.trace is None


def test_unknown_response_tag_rejected():
    try:
        decode_response({"type": "SOMETHING_ELSE", "payload": {}})
        raise AssertionError("Should have raised ProtocolError")
    except ProtocolError:
        pass


def test_malformed_response_payload_is_protocol_error():
    try:
        decode_response({"type": "PREDICT_RISK_RESULT", "payload": {"level": "low"}, "id": 999})
        raise AssertionError("Should have raised ProtocolError")
    except ProtocolError as exc:
        assert "PREDICT_RISK_RESULT" in str(exc) and "score" in str(exc)


def test_wire_keys_are_camel_case():
    message = PredictRiskRequest(payload=steady_history(), correlation_id=4).to_message()
    assert message["type"] == "PREDICT_RISK" and message["id"] == 4
    payload = message["payload"]
    assert {"checkIns", "meetings", "meditations", "asOf"} <= set(payload)
    assert "date" in payload["checkIns"][0] and "timestamp" not in payload["checkIns"][0]
    assert payload["meetings"][0]["type"] == "AA"


def test_correlation_of_tolerates_any_message():
    assert correlation_of({"id": [1]}) == [1]
    assert correlation_of({"type": "ERROR"}) is None
    assert correlation_of("garbage") is None
    assert correlation_of(ErrorResponse(error=Failure(), correlation_id=5)) == 5

"""
Unit tests for the exception hierarchy.
"""

from installpilot.error_handling import (
    AcquisitionError,
    CaptureIOError,
    DecisionParseError,
    InstallPilotError,
    MountError,
    NonRetryableError,
    OperationTimeoutError,
    OutOfBoundsError,
    PlatformError,
    RetryableError,
    SessionError,
)


class TestHierarchy:
    def test_transient_faults_are_retryable(self):
        for error_cls in (CaptureIOError, DecisionParseError):
            assert issubclass(error_cls, RetryableError)
        assert issubclass(OperationTimeoutError, RetryableError)

    def test_lifecycle_faults_are_not_retryable(self):
        for error_cls in (OutOfBoundsError, AcquisitionError, MountError, PlatformError, SessionError):
            assert issubclass(error_cls, NonRetryableError)
            assert not issubclass(error_cls, RetryableError)


class TestToDict:
    def test_base_error_serializes(self):
        cause = ValueError("root cause")
        error = InstallPilotError("Something broke", details={"k": "v"}, cause=cause)

        data = error.to_dict()

        assert data["error_type"] == "InstallPilotError"
        assert data["error_code"] == "InstallPilotError"
        assert data["message"] == "Something broke"
        assert data["details"] == {"k": "v"}
        assert data["cause"] == "root cause"
        assert "timestamp" in data

    def test_out_of_bounds_details(self):
        error = OutOfBoundsError("outside", coordinate=(2000, 10), geometry=(1920, 1080))

        assert error.details == {"coordinate": [2000, 10], "geometry": [1920, 1080]}

    def test_decision_parse_error_truncates_raw_reply(self):
        error = DecisionParseError("bad", raw_response="x" * 2000)

        assert error.raw_response == "x" * 2000
        assert len(error.details["raw_response"]) == 500

    def test_timeout_details(self):
        error = OperationTimeoutError("slow", operation="decide", timeout_seconds=180)

        assert error.to_dict()["details"] == {"operation": "decide", "timeout_seconds": 180}

    def test_mount_error_defaults_to_mount_operation(self):
        error = MountError("failed", target="/tmp/App.dmg")

        assert error.operation == "mount"
        assert error.details["target"] == "/tmp/App.dmg"

    def test_session_error_carries_outcome(self):
        error = SessionError("ended failed", outcome="failed", attempts=1, reasoning="installer crashed")

        assert error.details == {
            "outcome": "failed",
            "attempts": 1,
            "reasoning": "installer crashed",
        }

    def test_custom_error_code(self):
        error = AcquisitionError("missing", bundle_id="com.example.App", error_code="ARTIFACT_MISSING")

        assert error.error_code == "ARTIFACT_MISSING"
        assert error.details["bundle_id"] == "com.example.App"

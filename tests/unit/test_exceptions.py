import httpx

from core.exceptions import (
    APIExtractionError,
    DatasetValidationError,
    LoadError,
    MetadataError,
    NetworkError,
    NonRetryableError,
    RetryableError,
    SyncException,
    UpstreamHTTPError,
)


def test_upstream_errors_are_retryable_extraction_errors():
    error = UpstreamHTTPError("Upstream returned HTTP 503", status_code=503, retry_count=3)

    assert isinstance(error, RetryableError)
    assert isinstance(error, APIExtractionError)
    assert error.context["status_code"] == 503
    assert error.context["retry_count"] == 3


def test_validation_errors_are_not_retryable():
    error = DatasetValidationError("Unknown dataset 16")

    assert isinstance(error, NonRetryableError)
    assert not isinstance(error, RetryableError)


def test_metadata_error_is_load_error():
    assert issubclass(MetadataError, LoadError)
    assert issubclass(LoadError, SyncException)


def test_to_dict_and_str_carry_cause():
    cause = httpx.ConnectError("connection refused")
    error = NetworkError("Request failed", context={"resource": "res-1"}, original_exception=cause)

    data = error.to_dict()
    assert data["error_type"] == "NetworkError"
    assert data["context"]["resource"] == "res-1"
    assert data["original_error"] == "connection refused"
    assert error.__cause__ is cause
    assert "Caused by: ConnectError" in str(error)

import pytest

from opencode_sidecar.envelope import field_of, unwrap_data
from opencode_sidecar.errors import DownstreamError


def test_unwrap_prefers_error_data_message() -> None:
    with pytest.raises(DownstreamError) as exc_info:
        unwrap_data({"error": {"name": "ProviderAuthError", "data": {"message": "bad key"}}})

    assert str(exc_info.value) == "bad key"
    assert exc_info.value.name == "ProviderAuthError"
    assert exc_info.value.code == "UNKNOWN_ERROR"


def test_unwrap_falls_back_to_error_name() -> None:
    with pytest.raises(DownstreamError, match="^AuthError$"):
        unwrap_data({"error": {"name": "AuthError"}})


def test_unwrap_falls_back_to_serialized_error() -> None:
    with pytest.raises(DownstreamError) as exc_info:
        unwrap_data({"error": {"status": 500}})

    assert str(exc_info.value) == '{"status": 500}'


def test_unwrap_returns_data() -> None:
    assert unwrap_data({"data": {"x": 1}}) == {"x": 1}


def test_unwrap_passes_through_plain_payloads() -> None:
    assert unwrap_data([1, 2]) == [1, 2]
    assert unwrap_data({"healthy": True}) == {"healthy": True}
    assert unwrap_data(None) is None


def test_unwrap_ignores_empty_error_field() -> None:
    assert unwrap_data({"error": None, "data": "ok"}) == "ok"


def test_unwrap_raises_on_empty_error_object() -> None:
    with pytest.raises(DownstreamError) as exc_info:
        unwrap_data({"error": {}})

    assert str(exc_info.value) == "{}"


def test_field_of_reads_attributes_and_mappings() -> None:
    class Part:
        text = "hi"

    assert field_of({"text": "hi"}, "text") == "hi"
    assert field_of(Part(), "text") == "hi"
    assert field_of(None, "text", "dflt") == "dflt"

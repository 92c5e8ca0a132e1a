"""Tests for the package public API."""

import engage_pod


class TestPublicApi:
    """Test cases for top-level exports."""

    def test_version(self) -> None:
        assert engage_pod.__version__ == "0.1.0"

    def test_all_names_resolve(self) -> None:
        for name in engage_pod.__all__:
            assert hasattr(engage_pod, name), name

    def test_error_hierarchy(self) -> None:
        for error in (
            engage_pod.EncodingError,
            engage_pod.ParseError,
            engage_pod.AuthenticationError,
            engage_pod.OperationFault,
            engage_pod.TransportError,
        ):
            assert issubclass(error, engage_pod.EngageError)

    def test_codec_round_trip_from_top_level(self) -> None:
        doc = engage_pod.encode({"RESULT": {"SUCCESS": "true", "LIST": ["a", "b"]}})

        assert engage_pod.decode(doc.to_string()).to_python() == {
            "RESULT": {"SUCCESS": "true", "LIST": ["a", "b"]},
        }

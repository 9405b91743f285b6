"""Tests for the dockwire error hierarchy."""

from __future__ import annotations

import dockwire
import pytest
from dockwire.errors import (
    ApiError,
    Conflict,
    DecodeError,
    DockwireError,
    LocalIOError,
    NotFound,
    ProgressError,
    ProtocolError,
    SocketCommunicationError,
    SocketConnectionError,
    SocketError,
    StreamError,
    TlsError,
    TruncatedStreamError,
)

# -- Inheritance --


@pytest.mark.parametrize(
    ("child", "parent"),
    [
        (SocketError, DockwireError),
        (SocketConnectionError, SocketError),
        (TlsError, SocketConnectionError),
        (SocketCommunicationError, SocketError),
        (ApiError, DockwireError),
        (NotFound, ApiError),
        (Conflict, ApiError),
        (StreamError, DockwireError),
        (DecodeError, StreamError),
        (ProtocolError, StreamError),
        (TruncatedStreamError, StreamError),
        (LocalIOError, DockwireError),
        (ProgressError, DockwireError),
    ],
)
def test_hierarchy(child: type[Exception], parent: type[Exception]) -> None:
    assert issubclass(child, parent)


def test_local_io_error_is_not_builtin_oserror() -> None:
    assert not issubclass(LocalIOError, OSError)


# -- Catchability --


def test_catch_tls_error_as_connection_error() -> None:
    try:
        raise TlsError("https://docker:2376", "certificate verify failed")
    except SocketConnectionError:
        pass


def test_catch_not_found_as_dockwire_error() -> None:
    try:
        raise NotFound(404, b"")
    except DockwireError:
        pass


# -- Attribute storage --


def test_socket_connection_error_stores_endpoint() -> None:
    err = SocketConnectionError("unix:///tmp/test.sock", "refused")
    assert err.endpoint == "unix:///tmp/test.sock"
    assert "refused" in str(err)
    assert "/tmp/test.sock" in str(err)


def test_socket_connection_error_without_detail() -> None:
    err = SocketConnectionError("unix:///tmp/test.sock")
    assert str(err) == "Cannot connect to unix:///tmp/test.sock"


def test_tls_error_message() -> None:
    err = TlsError("https://docker:2376", "bad cert")
    assert "TLS failure: bad cert" in str(err)
    assert err.endpoint == "https://docker:2376"


def test_socket_communication_error_stores_detail() -> None:
    err = SocketCommunicationError("broken pipe")
    assert err.detail == "broken pipe"
    assert "broken pipe" in str(err)


def test_socket_communication_error_without_detail() -> None:
    assert str(SocketCommunicationError()) == "Socket communication error"


def test_api_error_keeps_literal_body() -> None:
    body = b'{"message": "No such container: abc"}'
    err = ApiError(404, body)
    assert err.status == 404
    assert err.body == body
    assert err.message == "No such container: abc"
    assert str(err) == "HTTP 404: No such container: abc"


def test_api_error_plain_text_body() -> None:
    err = ApiError(500, b"page not found\n")
    assert err.text == "page not found\n"
    assert err.message == "page not found"


def test_api_error_json_without_message() -> None:
    assert ApiError(400, b'{"error": "x"}').message == '{"error": "x"}'


def test_truncated_stream_error_fields() -> None:
    err = TruncatedStreamError(10, 3, "payload")
    assert (err.expected, err.received) == (10, 3)
    assert "mid-payload" in str(err)


def test_protocol_error_selector() -> None:
    err = ProtocolError(9)
    assert err.selector == 9
    assert "9" in str(err)


def test_decode_error_data() -> None:
    err = DecodeError("bad", b"{x")
    assert err.data == b"{x"
    assert err.detail == "bad"


def test_local_io_error_path() -> None:
    err = LocalIOError("/ctx/secret", "Permission denied")
    assert err.path == "/ctx/secret"
    assert str(err) == "I/O error on /ctx/secret: Permission denied"


def test_progress_error_message_prefers_detail() -> None:
    assert str(ProgressError("failed")) == "failed"
    assert str(ProgressError("failed", "exit code 2")) == "exit code 2"


# -- Exports --


def test_errors_exported_from_package() -> None:
    assert dockwire.ApiError is ApiError
    assert dockwire.NotFound is NotFound
    assert dockwire.TruncatedStreamError is TruncatedStreamError
    assert dockwire.LocalIOError is LocalIOError

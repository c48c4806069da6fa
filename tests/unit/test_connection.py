"""
Unit tests for request framing on a client connection, using a local
socket pair instead of a real listener.
"""

import socket

import pytest

from userapi.core.connection import Connection, ConnectionState, RequestTooLargeError
from userapi.http.request import HTTPParseError, parse_request


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        try:
            s.close()
        except OSError:
            pass


def make_conn(sock, **kwargs):
    kwargs.setdefault("timeout", 2.0)
    kwargs.setdefault("keep_alive_timeout", 0.2)
    return Connection(socket=sock, address=("127.0.0.1", 40000), **kwargs)


class TestReadRequest:

    def test_reads_headers_only_request(self, pair):
        server_side, client_side = pair
        raw = b"GET /users HTTP/1.1\r\nHost: x\r\n\r\n"
        client_side.sendall(raw)

        conn = make_conn(server_side)

        assert conn.read_request() == raw
        assert conn.requests_handled == 1

    def test_reads_body_by_content_length(self, pair):
        server_side, client_side = pair
        raw = b"POST /users HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
        client_side.sendall(raw)

        assert make_conn(server_side).read_request() == raw

    def test_body_split_across_reads(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"POST /users HTTP/1.1\r\nContent-Length: 10\r\n\r\n01234")
        client_side.sendall(b"56789")

        data = make_conn(server_side, buffer_size=16).read_request()

        assert data.endswith(b"\r\n\r\n0123456789")

    def test_pipelined_requests_are_split(self, pair):
        server_side, client_side = pair
        first = b"POST /users HTTP/1.1\r\nContent-Length: 2\r\n\r\n{}"
        second = b"GET /users/1 HTTP/1.1\r\n\r\n"
        client_side.sendall(first + second)

        conn = make_conn(server_side)

        assert conn.read_request() == first
        assert conn.read_request() == second

    def test_eof_returns_none(self, pair):
        server_side, client_side = pair
        client_side.close()

        assert make_conn(server_side).read_request() is None

    def test_first_request_timeout(self, pair):
        server_side, _ = pair
        conn = make_conn(server_side, timeout=0.2)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_idle_keep_alive_returns_none(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"GET / HTTP/1.1\r\n\r\n")
        conn = make_conn(server_side)
        conn.read_request()

        assert conn.read_request() is None

    def test_too_large(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 4096)

        conn = make_conn(server_side, max_request_size=1024)

        with pytest.raises(RequestTooLargeError):
            conn.read_request()

    def test_content_length_parsing(self, pair):
        server_side, _ = pair
        conn = make_conn(server_side)

        assert conn._parse_content_length(b"POST / HTTP/1.1\r\ncontent-LENGTH: 12") == 12
        assert conn._parse_content_length(b"POST / HTTP/1.1\r\nContent-Length: x") == 0
        assert conn._parse_content_length(b"POST / HTTP/1.1\r\nContent-Length: -3") == 0
        assert conn._parse_content_length(b"GET / HTTP/1.1") == 0


class TestChunkedBody:

    def test_chunks_are_joined(self, pair):
        server_side, client_side = pair
        client_side.sendall(
            b"POST /users HTTP/1.1\r\nHost: x\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"5\r\nhello\r\n"
            b"6;note=ext\r\n world\r\n"
            b"0\r\n"
            b"Expires: never\r\n"
            b"\r\n"
        )

        request = parse_request(make_conn(server_side).read_request())

        assert request.body == b"hello world"
        assert request.get_header("Content-Length") == "11"
        assert request.get_header("Transfer-Encoding") == ""
        assert request.get_header("Expires") == ""

    def test_chunks_split_across_reads(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\nA\r\n01234")
        client_side.sendall(b"56789\r\n0\r\n\r\n")

        data = make_conn(server_side, buffer_size=8).read_request()

        assert parse_request(data).body == b"0123456789"

    def test_chunked_wins_over_content_length(self, pair):
        server_side, client_side = pair
        client_side.sendall(
            b"POST /users HTTP/1.1\r\nContent-Length: 99\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"2\r\n{}\r\n0\r\n\r\n"
        )

        request = parse_request(make_conn(server_side).read_request())

        assert request.body == b"{}"
        assert request.get_header("Content-Length") == "2"

    def test_pipelined_after_chunked(self, pair):
        server_side, client_side = pair
        second = b"GET /users/1 HTTP/1.1\r\n\r\n"
        client_side.sendall(
            b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n2\r\n{}\r\n0\r\n\r\n"
            + second
        )

        conn = make_conn(server_side)

        assert parse_request(conn.read_request()).body == b"{}"
        assert conn.read_request() == second

    @pytest.mark.parametrize("chunk", [
        b"zz\r\nhello\r\n0\r\n\r\n",
        b"-5\r\nhello\r\n0\r\n\r\n",
        b"0x5\r\nhello\r\n0\r\n\r\n",
        b"\r\nhello\r\n0\r\n\r\n",
        b"5\r\nhelloXX0\r\n\r\n",
    ])
    def test_malformed_chunks(self, pair, chunk):
        server_side, client_side = pair
        client_side.sendall(b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n" + chunk)

        with pytest.raises(HTTPParseError) as exc_info:
            make_conn(server_side).read_request()

        assert exc_info.value.status_code == 400

    def test_eof_before_last_chunk(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n5\r\nhel")
        client_side.shutdown(socket.SHUT_WR)

        with pytest.raises(HTTPParseError):
            make_conn(server_side).read_request()

    @pytest.mark.parametrize("coding, status", [
        ("gzip", 400),
        ("chunked, gzip", 400),
        ("gzip, chunked", 501),
    ])
    def test_other_transfer_codings(self, pair, coding, status):
        server_side, client_side = pair
        client_side.sendall(
            f"POST /users HTTP/1.1\r\nTransfer-Encoding: {coding}\r\n\r\n0\r\n\r\n".encode()
        )

        with pytest.raises(HTTPParseError) as exc_info:
            make_conn(server_side).read_request()

        assert exc_info.value.status_code == status

    def test_chunked_body_counts_toward_size_limit(self, pair):
        server_side, client_side = pair
        client_side.sendall(
            b"POST /users HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n"
            + b"400\r\n" + b"a" * 1024 + b"\r\n"
        )

        with pytest.raises(RequestTooLargeError):
            make_conn(server_side, max_request_size=512).read_request()


class TestSendAndClose:

    def test_send_response(self, pair):
        server_side, client_side = pair
        conn = make_conn(server_side)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        assert conn.state == ConnectionState.WRITING
        assert client_side.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_close_is_idempotent(self, pair):
        server_side, client_side = pair
        client_side.close()
        conn = make_conn(server_side)

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_context_manager_closes(self, pair):
        server_side, client_side = pair
        client_side.close()

        with make_conn(server_side) as conn:
            assert conn.client_ip == "127.0.0.1"

        assert conn.state == ConnectionState.CLOSED

    def test_send_after_close_fails(self, pair):
        server_side, client_side = pair
        client_side.close()
        conn = make_conn(server_side)
        conn.close()

        assert conn.send_response(b"x") is False

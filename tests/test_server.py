import os
import socket
import threading
import time

from range_file_server.config import ServerConfig
from range_file_server.server import RangeFileServer

PAYLOAD = os.urandom(50_000)


def read_until_closed(sock):
    response = b""
    while True:
        data = sock.recv(4096)
        if not data:
            return response
        response += data


def test_full_download(http_request, root):
    (root / "blob.bin").write_bytes(PAYLOAD)
    status, headers, body = http_request("GET", "/blob.bin")
    assert status == 200
    assert headers["Content-Type"] == "application/octet-stream"
    assert headers["Content-Length"] == str(len(PAYLOAD))
    assert body == PAYLOAD


def test_range_download(http_request, root):
    (root / "blob.bin").write_bytes(PAYLOAD)
    status, headers, body = http_request("GET", "/blob.bin", headers={"Range": "bytes=1000-1999"})
    assert status == 206
    assert headers["Content-Range"] == f"bytes 1000-1999/{len(PAYLOAD)}"
    assert body == PAYLOAD[1000:2000]


def test_missing_file(http_request):
    status, headers, body = http_request("GET", "/missing.txt")
    assert status == 404
    assert body == b""


def test_unsupported_methods(http_request, root):
    (root / "blob.bin").write_bytes(PAYLOAD)
    for method in ("POST", "DELETE", "PROPFIND"):
        status, headers, body = http_request(method, "/blob.bin")
        assert status == 405
        assert body == b""


def test_put_round_trip(http_request, root):
    status, _, _ = http_request("PUT", "/dir/upload.bin", body=PAYLOAD)
    assert status == 200
    assert (root / "dir" / "upload.bin").read_bytes() == PAYLOAD

    status, headers, body = http_request("GET", "/dir/upload.bin")
    assert status == 200
    assert headers["Content-Length"] == str(len(PAYLOAD))
    assert body == PAYLOAD


def test_resumable_put(http_request, root):
    assert http_request("PUT", "/up.bin", body=PAYLOAD[:100])[0] == 200
    assert http_request("PUT", "/up.bin", body=PAYLOAD[100:200],
                        headers={"Content-Range": "bytes=100-"})[0] == 200
    status, _, body = http_request("GET", "/up.bin")
    assert body == PAYLOAD[:200]


def test_resumed_put_at_wrong_offset(http_request, root):
    http_request("PUT", "/up.bin", body=PAYLOAD[:50])
    status, _, _ = http_request("PUT", "/up.bin", body=b"garbage",
                                headers={"Content-Range": "bytes=10-"})
    assert status == 400
    assert (root / "up.bin").read_bytes() == PAYLOAD[:50]


def test_chunked_put(http_request, root):
    parts = [PAYLOAD[:7000], PAYLOAD[7000:7001], PAYLOAD[7001:20000]]
    status, _, _ = http_request("PUT", "/chunked.bin", body=iter(parts))
    assert status == 200
    assert (root / "chunked.bin").read_bytes() == PAYLOAD[:20000]


def test_client_disconnect_does_not_stop_server(server, http_request, root):
    (root / "big.bin").write_bytes(PAYLOAD * 40)
    sock = socket.create_connection(("127.0.0.1", server.port))
    sock.sendall(b"GET /big.bin HTTP/1.1\r\nHost: localhost\r\n\r\n")
    sock.recv(100)
    sock.close()

    status, _, body = http_request("GET", "/big.bin", headers={"Range": "bytes=0-9"})
    assert status == 206
    assert body == PAYLOAD[:10]


def test_single_worker_serves_sequential_requests(root):
    (root / "a.txt").write_bytes(b"abc")
    config = ServerConfig(root=str(root), port=0, max_workers=1)
    with RangeFileServer(config) as server:
        for _ in range(3):
            sock = socket.create_connection(("127.0.0.1", server.port), timeout=10)
            sock.sendall(b"GET /a.txt HTTP/1.1\r\nHost: localhost\r\n\r\n")
            response = read_until_closed(sock)
            sock.close()
            assert response.startswith(b"HTTP/1.1 200")
            assert response.endswith(b"\r\n\r\nabc")


def test_listens_on_loopback(server):
    assert server.httpd.server_address[0] == "127.0.0.1"


def test_rejected_resume_with_large_body_still_gets_400(http_request, root):
    http_request("PUT", "/up.bin", body=PAYLOAD[:50])
    status, _, body = http_request("PUT", "/up.bin", body=b"\xab" * (8 * 1024 * 1024),
                                   headers={"Content-Range": "bytes=10-"})
    assert status == 400
    assert body == b""
    assert (root / "up.bin").read_bytes() == PAYLOAD[:50]


def test_large_post_gets_405(http_request):
    status, headers, _ = http_request("POST", "/up.bin", body=b"\0" * (8 * 1024 * 1024))
    assert status == 405
    assert headers["Allow"] == "GET, PUT"


def test_stop_while_every_worker_is_busy(root):
    config = ServerConfig(root=str(root), port=0, max_workers=1, request_timeout=60)
    server = RangeFileServer(config)
    server.start()
    idle = [socket.create_connection(("127.0.0.1", server.port)) for _ in range(2)]
    try:
        time.sleep(0.3)
        stopper = threading.Thread(target=server.stop, daemon=True)
        stopper.start()
        stopper.join(timeout=5)
        assert not stopper.is_alive()
    finally:
        for sock in idle:
            sock.close()


def test_idle_connection_frees_its_worker_after_timeout(root):
    (root / "a.txt").write_bytes(b"abc")
    config = ServerConfig(root=str(root), port=0, max_workers=1, request_timeout=0.5)
    with RangeFileServer(config) as server:
        idle = socket.create_connection(("127.0.0.1", server.port))
        try:
            sock = socket.create_connection(("127.0.0.1", server.port), timeout=10)
            sock.sendall(b"GET /a.txt HTTP/1.1\r\nHost: localhost\r\n\r\n")
            response = read_until_closed(sock)
            sock.close()
        finally:
            idle.close()
    assert response.startswith(b"HTTP/1.1 200")
    assert response.endswith(b"\r\n\r\nabc")


def test_head_is_not_allowed(http_request, root):
    (root / "a.txt").write_bytes(b"abc")
    status, headers, _ = http_request("HEAD", "/a.txt")
    assert status == 405
    assert headers["Allow"] == "GET, PUT"

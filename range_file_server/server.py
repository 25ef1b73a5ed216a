"""HTTP transport: request handler and a thread-bounded server."""

import signal
import threading
from functools import partial
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from range_file_server import __version__, console
from range_file_server.dispatcher import Dispatcher, bodiless
from range_file_server.errors import TransientIOError
from range_file_server.transfer import BoundedReader, ChunkedReader

DRAIN_CHUNK_SIZE = 64 * 1024

# how often a worker-slot wait checks for shutdown, in seconds
SLOT_POLL_INTERVAL = 0.5


class RangeRequestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server_version = f"RangeFileServer/{__version__}"

    def __init__(self, *args, dispatcher, **kwargs):
        self.dispatcher = dispatcher
        # applied to the socket in setup(), before the request line is read
        self.timeout = dispatcher.config.request_timeout
        super().__init__(*args, **kwargs)

    # -------------------------
    # Logging
    # -------------------------
    def log_message(self, format, *args):
        thread = threading.current_thread().name
        timestamp = self.log_date_time_string()
        client_ip = self.client_address[0]

        print(f"[{thread}] {client_ip} - - [{timestamp}] {format % args}", flush=True)

    # -------------------------
    # Methods
    # -------------------------
    def parse_request(self):
        if not super().parse_request():
            return False
        # Methods without a do_* handler would get a 501 from the base
        # class; the dispatcher answers them with 405 instead.
        if not hasattr(self, "do_" + self.command):
            self.handle_request()
            return False
        return True

    def do_GET(self):
        self.handle_request()

    def do_PUT(self):
        self.handle_request()

    def do_HEAD(self):
        self.handle_request()

    def do_POST(self):
        self.handle_request()

    def do_DELETE(self):
        self.handle_request()

    def do_PATCH(self):
        self.handle_request()

    def do_OPTIONS(self):
        self.handle_request()

    def handle_request(self):
        body = self.request_body()
        if body is None:
            self.send_descriptor(bodiless(HTTPStatus.BAD_REQUEST))
            return

        if self.command == "PUT":
            response = self.dispatcher.dispatch(self.command, self.path, self.headers, body)
        else:
            response = self.dispatcher.dispatch(self.command, self.path, self.headers)
        self.send_descriptor(response)
        self.discard_body(body)

    def request_body(self):
        """Byte source for the request body, or None if its framing is unusable."""
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            return ChunkedReader(self.rfile)

        length = self.headers.get("Content-Length", "0").strip() or "0"
        if not length.isdigit():
            self.log_message("Invalid Content-Length %r", length)
            return None
        return BoundedReader(self.rfile, int(length))

    def discard_body(self, body):
        """
        Read and drop whatever the dispatcher left of the request body.

        Closing a socket with unread input makes the kernel reset the
        connection, and the client loses the response it was sent. Bodies
        larger than ``drain_limit`` are abandoned.
        """
        limit = self.dispatcher.config.drain_limit
        discarded = 0
        try:
            while discarded <= limit:
                chunk = body.read(DRAIN_CHUNK_SIZE)
                if not chunk:
                    return
                discarded += len(chunk)
        except (TransientIOError, OSError) as err:
            console.log_error(f"{self.command} {self.path}: discarding request body: {err}")
            return
        console.log_error(f"{self.command} {self.path}: request body exceeds {limit} bytes, not drained")

    def send_descriptor(self, response):
        try:
            self.send_response(response.status)
            for name, value in response.headers.items():
                self.send_header(name, value)
            self.end_headers()

            if response.body is not None:
                # Headers are on the wire by now, so a failed body can only
                # be logged and the connection closed.
                result = response.body.stream_to(self.wfile, self.dispatcher.config.chunk_size)
                if not result.ok:
                    console.log_error(
                        f"{self.command} {self.path}: transfer ended after "
                        f"{result.bytes_transferred} bytes: {result.error}")
            self.wfile.flush()
        except OSError as err:
            # Client gone while sending headers, or file vanished mid-request
            console.log_error(f"{self.command} {self.path}: {err}")
        finally:
            self.close_connection = True


class BoundedThreadingHTTPServer(ThreadingHTTPServer):
    """
    One thread per connection, at most ``max_workers`` at a time.

    When every slot is taken the accept loop waits for a worker to finish
    instead of spawning more threads. A pending shutdown() ends the wait;
    the connection that was waiting is closed unanswered.
    """

    daemon_threads = True

    def __init__(self, server_address, RequestHandlerClass, max_workers=32):
        self.slots = threading.BoundedSemaphore(max_workers)
        self.stopping = threading.Event()
        super().__init__(server_address, RequestHandlerClass)

    def process_request(self, request, client_address):
        while not self.slots.acquire(timeout=SLOT_POLL_INTERVAL):
            if self.stopping.is_set():
                self.shutdown_request(request)
                return
        try:
            super().process_request(request, client_address)
        except Exception:
            self.slots.release()
            raise

    def process_request_thread(self, request, client_address):
        try:
            super().process_request_thread(request, client_address)
        finally:
            self.slots.release()

    def shutdown(self):
        self.stopping.set()
        super().shutdown()


class RangeFileServer:
    """Serves ``config.root`` on ``config.host:config.port`` until stopped."""

    def __init__(self, config, handler_cls=RangeRequestHandler):
        self.config = config
        self.dispatcher = Dispatcher(config)
        HandlerClass = partial(handler_cls, dispatcher=self.dispatcher)
        self.httpd = BoundedThreadingHTTPServer(
            (config.host, config.port),
            HandlerClass,
            max_workers=config.max_workers,
        )
        self._thread = None

    @property
    def port(self):
        return self.httpd.server_address[1]

    def serve_forever(self):
        console.log(f"Serving {self.config.root} on http://{self.config.host}:{self.port}/ "
                    f"({self.config.max_workers} workers)")
        self.httpd.serve_forever()

    def start(self):
        """Serve from a background thread and return immediately."""
        self._thread = threading.Thread(target=self.serve_forever, name="accept-loop", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def run_until_signal(self):
        """Start, then block the calling (main) thread until SIGINT/SIGTERM."""
        self.start()
        stop_event = threading.Event()

        def shutdown_handler(sig, frame):
            console.log(f"[SERVER] Received signal {sig}, shutting down...")
            stop_event.set()

        # Only Unix supports signals like SIGTERM
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)

        try:
            stop_event.wait()
        except KeyboardInterrupt:
            pass
        self.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()

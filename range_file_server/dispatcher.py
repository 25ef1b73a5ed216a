"""
Request dispatcher.

Turns (method, path, headers, body) into a ResponseDescriptor. Knows nothing
about sockets: the transport sends whatever comes back, then closes the
connection.

    GET  -> 200 whole file | 206 one range | 400 | 404 | 416
    PUT  -> 200 saved      | 400 bad/mismatched offset or broken body | 403
    else -> 405
"""

import io
import os
import urllib.parse
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import NamedTuple, Optional

from range_file_server import console
from range_file_server.content_types import resolve_content_type
from range_file_server.errors import (
    ForbiddenPathError,
    MethodNotAllowedError,
    NotFoundError,
    RangeNotSatisfiableError,
    RequestError,
)
from range_file_server.ranges import ByteRange, parse_range
from range_file_server.transfer import FileSpan, save_stream

ALLOWED_METHODS = ("GET", "PUT")


class ResourceDescriptor(NamedTuple):
    absolute_path: str
    exists: bool
    size: int


@dataclass
class ResponseDescriptor:
    status: int
    headers: dict = field(default_factory=dict)
    body: Optional[FileSpan] = None


def bodiless(status, **extra_headers):
    """Response with no body. Every response closes its connection."""
    headers = {"Content-Length": "0"}
    for name, value in extra_headers.items():
        headers[name.replace("_", "-")] = value
    headers["Connection"] = "close"
    return ResponseDescriptor(int(status), headers)


class Dispatcher:
    def __init__(self, config, log=console.log, log_error=console.log_error):
        self.config = config
        self.log = log
        self.log_error = log_error

    # -------------------------
    # Paths
    # -------------------------
    def resolve_path(self, url_path):
        """
        Map a request target onto the filesystem under the configured root.

        Query strings are dropped and percent-escapes decoded. Targets that
        normalise to somewhere outside the root raise ForbiddenPathError.
        """
        target = url_path.split("?", 1)[0].split("#", 1)[0]
        relative = urllib.parse.unquote(target).lstrip("/")
        if "\x00" in relative:
            raise ForbiddenPathError(f"invalid path {url_path!r}")

        root = self.config.root
        candidate = os.path.normpath(os.path.join(root, relative))
        if candidate != root and not candidate.startswith(root.rstrip(os.sep) + os.sep):
            raise ForbiddenPathError(f"path {url_path!r} escapes the served directory")
        return candidate

    def describe(self, url_path):
        path = self.resolve_path(url_path)
        if not os.path.isfile(path):
            return ResourceDescriptor(path, False, 0)
        return ResourceDescriptor(path, True, os.path.getsize(path))

    # -------------------------
    # Entry point
    # -------------------------
    def dispatch(self, method, url_path, headers, body=None):
        try:
            if method == "GET":
                return self.serve(url_path, headers)
            if method == "PUT":
                return self.save(url_path, headers, body)
            raise MethodNotAllowedError(f"method {method} not allowed")
        except MethodNotAllowedError as err:
            return bodiless(err.status, Allow=", ".join(ALLOWED_METHODS))
        except RangeNotSatisfiableError as err:
            return bodiless(err.status, Content_Range=f"bytes */{err.size}")
        except RequestError as err:
            if err.status != HTTPStatus.NOT_FOUND:
                self.log(f"{method} {url_path} rejected: {err}")
            return bodiless(err.status)
        except OSError as err:
            self.log_error(f"{method} {url_path} failed: {err}")
            return bodiless(HTTPStatus.INTERNAL_SERVER_ERROR)

    # -------------------------
    # GET
    # -------------------------
    def serve(self, url_path, headers):
        try:
            resource = self.describe(url_path)
        except ForbiddenPathError:
            raise NotFoundError(url_path) from None
        if not resource.exists:
            raise NotFoundError(url_path)

        range_header = headers.get("Range")
        response_headers = {"Content-Type": resolve_content_type(resource.absolute_path)}

        if range_header:
            byte_range = parse_range(range_header, resource.size)
            # Stricter than a plain seek-and-read: a start past the last
            # byte would otherwise announce a length that is never sent.
            if byte_range.start >= resource.size:
                raise RangeNotSatisfiableError(byte_range.start, resource.size)
            self.log(f"Get {url_path}    Range {range_header}")
            response_headers["Content-Range"] = byte_range.content_range(resource.size)
            response_headers["Content-Length"] = str(byte_range.length)
            response_headers["Accept-Ranges"] = "bytes"
            response_headers["Connection"] = "close"
            return ResponseDescriptor(HTTPStatus.PARTIAL_CONTENT, response_headers,
                                      FileSpan(resource.absolute_path, byte_range))

        self.log(f"Get {url_path}")
        response_headers["Content-Length"] = str(resource.size)
        response_headers["Accept-Ranges"] = "bytes"
        response_headers["Connection"] = "close"
        span = None
        if resource.size:
            span = FileSpan(resource.absolute_path, ByteRange(0, resource.size - 1))
        return ResponseDescriptor(HTTPStatus.OK, response_headers, span)

    # -------------------------
    # PUT
    # -------------------------
    def save(self, url_path, headers, body):
        path = self.resolve_path(url_path)
        content_range = headers.get("Content-Range")
        source = body if body is not None else io.BytesIO()

        result = save_stream(path, content_range, source, self.config.chunk_size)
        if not result.ok:
            self.log_error(f"Put {url_path} interrupted after {result.bytes_transferred} bytes: {result.error}")
            return bodiless(HTTPStatus.BAD_REQUEST)

        if content_range:
            self.log(f"Put {url_path}    Content-Range {content_range}    {result.bytes_transferred} bytes")
        else:
            self.log(f"Put {url_path}    {result.bytes_transferred} bytes")
        return bodiless(HTTPStatus.OK)

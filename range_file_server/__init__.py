"""
Range File Server

A small HTTP file server exposing one directory tree for reading (GET) and
writing (PUT), bound to the loopback interface.

Key Features:
- Byte-range downloads (206 Partial Content) for single ranges
- Resumable uploads: PUT with a Content-Range continues at the current
  end of the file, a PUT without one overwrites it
- Threaded server with a bounded number of worker threads
- Shell-style config file with CLI overrides

Changelog:
- 2026.10.19.01 : Initial draft
                  Range reader and resumable partial writer
                  Bounded threaded server, loopback only
                  Config file and CLI overrides
"""

__version__ = "2026.10.19.01"

from range_file_server.config import ServerConfig
from range_file_server.dispatcher import Dispatcher, ResponseDescriptor
from range_file_server.ranges import ByteRange, parse_range

__all__ = [
    "ByteRange",
    "Dispatcher",
    "ResponseDescriptor",
    "ServerConfig",
    "parse_range",
]

import os
import sys
import argparse

from range_file_server import __version__
from range_file_server.config import ServerConfig, config_from_file
from range_file_server.ports import ensure_port_free
from range_file_server.server import RangeFileServer


def build_parser():
    parser = argparse.ArgumentParser(
        prog="range-file-server",
        description="Serve a directory over HTTP on 127.0.0.1 with range downloads and resumable uploads.",
    )
    parser.add_argument('--config', help='Shell-style config file (CFG_ROOT, CFG_PORT, ...)')
    parser.add_argument('--root', help='Directory to serve')
    parser.add_argument('--port', type=int, help='Port number (default: 80)')
    parser.add_argument('--workers', type=int, dest='max_workers',
                        help='Maximum concurrent connections (default: 32)')
    parser.add_argument('--kill-existing', action='store_true',
                        help='Terminate processes already listening on the port')
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser


def load_config(args):
    """Config file first, then command-line overrides."""
    overrides = {"root": args.root, "port": args.port, "max_workers": args.max_workers}
    if args.config:
        return config_from_file(args.config, **overrides)
    if not args.root:
        raise ValueError("No root directory: pass --root or --config")
    return ServerConfig(**{k: v for k, v in overrides.items() if v is not None})


def main(argv=None):
    args = build_parser().parse_args(argv)

    print("{:#^30}".format("Script Start"), flush=True)
    try:
        config = load_config(args)

        print(f"{'=' * 10} Config - Start {'=' * 10}", flush=True)
        print(f"{'Serving path:':15} {config.root}", flush=True)
        print(f"{'Port:':15} {config.port}", flush=True)
        print(f"{'Bind IP:':15} {config.host}", flush=True)
        print(f"{'Workers:':15} {config.max_workers}", flush=True)
        print(f"{'=' * 10} Config - End {'=' * 10}", flush=True)

        if not os.path.isdir(config.root):
            raise ValueError(f"Invalid directory: {config.root}")

        ensure_port_free(config.host, config.port, kill_existing=args.kill_existing)
        RangeFileServer(config).run_until_signal()
    except Exception as Err:
        print(f"Observed exception: {Err}", file=sys.stderr, flush=True)
        return 1
    print("{:#^30}".format("Script End"), flush=True)
    return 0

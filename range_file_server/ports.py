"""Port checks before binding the listener."""

import os
import signal
import socket

import psutil


def can_bind(ip, port):
    """Return True if ip:port can be bound."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind((ip, port))
        return True
    except OSError:
        return False
    finally:
        s.close()


def listeners_on_port(port):
    """PIDs of processes with a listening socket on ``port``."""
    pids = []
    for proc in psutil.process_iter(attrs=["pid", "name"]):
        try:
            for conn in proc.net_connections(kind="inet"):
                if conn.laddr and conn.laddr.port == port and conn.status == psutil.CONN_LISTEN:
                    pids.append(proc.pid)
                    break
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return pids


def kill_process_on_port(port, *, force=False):
    killed_pids = []
    sig = signal.SIGKILL if force else signal.SIGTERM
    for pid in listeners_on_port(port):
        if pid == os.getpid():
            continue
        try:
            os.kill(pid, sig)
        except (ProcessLookupError, PermissionError):
            continue
        killed_pids.append(pid)
    return killed_pids


def ensure_port_free(ip, port, *, kill_existing=False):
    """
    Raise RuntimeError if ``ip:port`` cannot be bound.

    With ``kill_existing``, processes listening on the port are sent SIGTERM
    first and the bind is retried once they are gone.
    """
    if port == 0 or can_bind(ip, port):
        return

    pids = listeners_on_port(port)
    if kill_existing and pids:
        killed = kill_process_on_port(port)
        print(f"Killed processes on port {port}: {killed}", flush=True)
        _, alive = psutil.wait_procs(_existing(killed), timeout=5)
        if not alive and can_bind(ip, port):
            return
        pids = [p.pid for p in alive] or pids

    if pids:
        raise RuntimeError(f"Requested port {port} is already in use by PIDs {pids}")
    if port < 1024 and hasattr(os, "geteuid") and os.geteuid() != 0:
        raise RuntimeError(f"Non-root cannot bind port {port}, choose a port >= 1024")
    raise RuntimeError(f"Cannot bind {ip}:{port}")


def _existing(pids):
    procs = []
    for pid in pids:
        try:
            procs.append(psutil.Process(pid))
        except psutil.NoSuchProcess:
            continue
    return procs

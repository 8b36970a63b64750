"""Thread-safe registry of deployment_id -> running subprocess, plus cancellation flags for cooperative cancel."""
import threading
import subprocess
import logging

logger = logging.getLogger(__name__)
_lock = threading.Lock()
_registry: dict[str, subprocess.Popen] = {}
_cancelled: set[str] = set()
_active: set[str] = set()


def register(deployment_id: str, process: subprocess.Popen) -> None:
    with _lock:
        _registry[deployment_id] = process
        logger.debug(f"Registered process for deployment {deployment_id}")


def unregister(deployment_id: str) -> None:
    with _lock:
        _registry.pop(deployment_id, None)
        logger.debug(f"Unregistered deployment {deployment_id}")


def get_process(deployment_id: str) -> subprocess.Popen | None:
    with _lock:
        return _registry.get(deployment_id)


def begin(deployment_id: str) -> None:
    """Mark an attempt as running in this process."""
    with _lock:
        _active.add(deployment_id)


def is_active(deployment_id: str) -> bool:
    with _lock:
        return deployment_id in _active


def request_cancel(deployment_id: str) -> None:
    with _lock:
        _cancelled.add(deployment_id)


def is_cancelled(deployment_id: str) -> bool:
    with _lock:
        return deployment_id in _cancelled


def clear(deployment_id: str) -> None:
    """Forget everything about a finished attempt."""
    with _lock:
        _registry.pop(deployment_id, None)
        _cancelled.discard(deployment_id)
        _active.discard(deployment_id)


def terminate(deployment_id: str, wait_seconds: float = 3.0) -> bool:
    """Flag deployment_id as cancelled and terminate its running process. Returns True if a process was terminated."""
    request_cancel(deployment_id)
    with _lock:
        proc = _registry.get(deployment_id)
    if proc is None:
        return False
    try:
        proc.terminate()
        try:
            proc.wait(timeout=wait_seconds)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
    except Exception as e:
        logger.warning(f"Error terminating deployment {deployment_id}: {e}")
    finally:
        unregister(deployment_id)
    return True

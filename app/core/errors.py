from __future__ import annotations

from contextlib import contextmanager
import json
import logging
import threading
from typing import Any, Callable, Iterator, Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "The data store is unavailable. Please try again."


class StoreError(Exception):
    """Base class for failures raised by a document store backend."""


class StoreUnavailable(StoreError):
    pass


class DocumentNotFound(StoreError):
    def __init__(self, path: str):
        super().__init__(f"Document not found: {path}")
        self.path = path


class DocumentConflict(StoreError):
    def __init__(self, path: str):
        super().__init__(f"Document already exists: {path}")
        self.path = path


def _jsonable(context: dict) -> dict:
    return json.loads(json.dumps(context, default=str))


def _format_permission_error(context: dict) -> str:
    intro = (
        "Missing or insufficient permissions: the following request was denied "
        "by the document store:"
    )
    try:
        return f"{intro}\n{json.dumps(context, indent=2, default=str)}"
    except (TypeError, ValueError):
        return intro


class StorePermissionError(StoreError):
    def __init__(
        self,
        path: str,
        operation: str,
        request_resource_data: Any = None,
    ):
        self.context = {"path": path, "operation": operation}
        if request_resource_data is not None:
            self.context["request_resource_data"] = request_resource_data
        super().__init__(_format_permission_error(self.context))
        self.path = path
        self.operation = operation
        self.request_resource_data = request_resource_data


PermissionObserver = Callable[[StorePermissionError], None]

_OBSERVERS: list[PermissionObserver] = []
_OBSERVERS_LOCK = threading.Lock()


def add_permission_observer(observer: PermissionObserver) -> Callable[[], None]:
    """Register a diagnostics callback; returns a function that removes it."""
    with _OBSERVERS_LOCK:
        _OBSERVERS.append(observer)

    def _remove() -> None:
        with _OBSERVERS_LOCK:
            if observer in _OBSERVERS:
                _OBSERVERS.remove(observer)

    return _remove


def notify_permission_error(error: StorePermissionError) -> None:
    with _OBSERVERS_LOCK:
        observers = list(_OBSERVERS)
    for observer in observers:
        try:
            observer(error)
        except Exception:
            logger.exception("Permission observer failed")


def log_permission_error(error: StorePermissionError) -> None:
    logger.warning("Permission denied on %s (%s)", error.path, error.operation)


def to_http_exception(
    exc: StoreError,
    path: str,
    operation: str,
    request_resource_data: Any = None,
) -> HTTPException:
    if isinstance(exc, StorePermissionError):
        if exc.request_resource_data is None and request_resource_data is not None:
            exc = StorePermissionError(exc.path, exc.operation, request_resource_data)
        notify_permission_error(exc)
        return HTTPException(
            status_code=403,
            detail={"message": "Permission denied", "context": _jsonable(exc.context)},
        )
    if isinstance(exc, DocumentNotFound):
        return HTTPException(status_code=404, detail="Document not found")
    if isinstance(exc, DocumentConflict):
        return HTTPException(status_code=409, detail="Document already exists")
    logger.error("Store %s on %s failed: %s", operation, path, exc)
    return HTTPException(status_code=503, detail=UNAVAILABLE_MESSAGE)


@contextmanager
def store_errors(
    path: str,
    operation: str,
    request_resource_data: Optional[Any] = None,
) -> Iterator[None]:
    """Translate store failures raised inside the block into HTTP errors."""
    try:
        yield
    except StoreError as exc:
        raise to_http_exception(exc, path, operation, request_resource_data) from exc

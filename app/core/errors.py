"""
Error taxonomy for the task service.

Request validation is left to FastAPI/Pydantic (``RequestValidationError``);
everything else the service can fail with lives here. ``BackendUnavailableError``
is raised by the cache backend only and is always recovered inside the cache
components, so it never reaches an HTTP handler.
"""


class TaskServiceError(Exception):
    """Base class for errors surfaced to the HTTP layer."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TaskServiceError):
    status_code = 404

    def __init__(self, task_id: int):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class ConflictError(TaskServiceError):
    """A lifecycle guard rejected the mutation (already started, not started...)."""

    status_code = 409

    def __init__(self, task_id: int, message: str):
        super().__init__(message)
        self.task_id = task_id


class StoreError(TaskServiceError):
    """The relational store failed; the request cannot be served."""

    status_code = 500

    def __init__(self, operation: str):
        super().__init__(f"Data store failure during {operation}")
        self.operation = operation


class BackendUnavailableError(Exception):
    """The key-value cache backend could not complete an operation."""

    def __init__(self, operation: str, key: str, cause: Exception | None = None):
        super().__init__(f"Cache backend unavailable for {operation} {key}: {cause}")
        self.operation = operation
        self.key = key
        self.cause = cause

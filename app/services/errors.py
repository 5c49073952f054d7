"""
Errors raised by the resource layer. Each carries the HTTP status it maps to.
"""
from typing import Any


class ResourceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ResourceNotFoundError(ResourceError):
    status_code = 404

    def __init__(self, schema: Any, record_id: Any):
        super().__init__(f"{schema.label} with id: {record_id} not found.")
        self.record_id = record_id


class RecordValidationError(ResourceError):
    status_code = 400


class StorageError(ResourceError):
    status_code = 500

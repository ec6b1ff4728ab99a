"""Error kinds raised by the order core.

``status_code`` is the HTTP status a controller layer should answer with.
"""
from typing import Any, List, Optional, Sequence


class OrderError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(OrderError):
    status_code = 404

    def __init__(self, message: str, missing_ids: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.missing_ids = list(missing_ids or [])


class InvalidTransitionError(OrderError):
    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class InsufficientStockError(OrderError):
    def __init__(self, message: str, product_id: Optional[str] = None):
        super().__init__(message)
        self.product_id = product_id


class ValidationFailure(OrderError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []

# Overview: Error taxonomy shared by services and routes.

"""
Every core failure maps to one of these classes. Routes translate them to
JSON responses with `e.status_code`; anything else is logged and returned as
a generic 500 so storage details never reach the client.
"""


class StockbillError(Exception):
    """Base class for errors that carry an HTTP status."""

    status_code = 500

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(StockbillError):
    """No identity, or an invalid/expired one."""
    status_code = 401


class ForbiddenError(StockbillError):
    """Identity is valid but does not own the resource and is not an admin."""
    status_code = 403


class NotFoundError(StockbillError):
    status_code = 404


class ItemNotFoundError(NotFoundError):
    """Inventory item missing or owned by another tenant."""

    def __init__(self, item_id):
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id


class TransactionFailedError(StockbillError):
    """
    An atomic multi-table operation could not commit.

    Nothing was applied; callers retry the whole operation.
    """
    status_code = 500


class StorageUnavailableError(StockbillError):
    status_code = 503

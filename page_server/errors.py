"""
Page Server errors

Registry, snapshot and selector failures. Errors raised by Playwright itself
are never wrapped in these classes; they propagate with their own type.
"""


class PageServerError(Exception):
    """Base class for page server failures"""


class NotFoundError(PageServerError):
    """No page is registered under the requested name"""

    def __init__(self, name: str, message: str = ""):
        self.name = name
        super().__init__(message or f"No page registered under '{name}'")


class PageClosedError(NotFoundError):
    """The page was closed before the operation could run"""

    def __init__(self, name: str):
        super().__init__(name, f"Page '{name}' is closed")


class InvalidPageNameError(PageServerError, ValueError):
    """Page names must be non-empty strings"""


class NotReadyError(PageServerError):
    """The page has no attached document (e.g. mid-navigation)"""


class UnknownIndexError(PageServerError):
    """The index was never assigned in the snapshot being resolved"""

    def __init__(self, index: int, message: str = ""):
        self.index = index
        super().__init__(message or f"Index {index} is not part of the current snapshot")


class StaleReferenceError(UnknownIndexError):
    """The element behind an index is gone (navigation, new snapshot, removal)"""

    def __init__(self, index: int, reason: str):
        self.reason = reason
        super().__init__(index, f"Index {index} is stale: {reason}")


class SelectorAmbiguousError(PageServerError):
    """No candidate selector matched exactly the referenced element"""

    def __init__(self, index: int, tried: int, detail: str = ""):
        self.index = index
        self.tried = tried
        super().__init__(detail or f"No unique selector for index {index} ({tried} candidates tried)")


class RemoteOperationError(PageServerError):
    """Client side: the server reported an error of a type not mapped locally"""

    def __init__(self, error_type: str, message: str, operation: str = "", page: str = ""):
        self.error_type = error_type
        self.operation = operation
        self.page = page
        super().__init__(f"{error_type}: {message}")

"""
Domain errors raised by the progress engine

Route handlers and the global handlers in main.py turn these into HTTP
responses; services never raise HTTPException themselves.
"""


class LearnPathError(Exception):
    """Base engine error"""

    status_code = 500

    def __init__(self, message: str, code: str = "learnpath_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(LearnPathError):
    """Course, module, item or progress row absent"""

    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, "not_found")


class InvalidStateError(LearnPathError):
    """Authoring data is inconsistent (e.g. an item without a module)"""

    status_code = 409

    def __init__(self, message: str = "Invalid state"):
        super().__init__(message, "invalid_state")


class PartialResolutionFailure(LearnPathError):
    """One content-kind lookup failed; its items render with fallbacks"""

    def __init__(self, kind: str, reference_ids=None, message: str = None):
        self.kind = kind
        self.reference_ids = list(reference_ids or [])
        super().__init__(
            message or f"Lookup for kind '{kind}' failed ({len(self.reference_ids)} references)",
            "partial_resolution_failure",
        )


class ConcurrentUpdateConflict(LearnPathError):
    """Reserved: aggregates are recomputed, not incremented"""

    status_code = 409

    def __init__(self, message: str = "Concurrent update conflict"):
        super().__init__(message, "concurrent_update_conflict")


class InternalError(LearnPathError):
    """A unit of work failed and was rolled back"""

    status_code = 500

    def __init__(self, message: str = "Internal error"):
        super().__init__(message, "internal_error")

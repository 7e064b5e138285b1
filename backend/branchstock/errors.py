# Overview: Base exception for service-layer failures.


class ServiceError(Exception):
    """
    Raised by service functions when an operation cannot be performed.

    status_code is the HTTP status the route answers with:
    400 for rule violations, 404 for missing records. Uniqueness conflicts
    use validation.ConflictError (409).
    """
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

    @classmethod
    def not_found(cls, message: str):
        return cls(message, status_code=404)

    def with_context(self, context: str):
        """Re-wrap with a "Failed to ..." prefix, keeping the status code."""
        return type(self)(f"{context}: {self}", status_code=self.status_code)

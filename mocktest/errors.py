"""Typed errors raised by the attempt and report layers."""


class MockTestError(Exception):
    """Base error for the mock test engine."""
    status_code: int = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class AuthorizationError(MockTestError):
    """
    No logged-in user, or the attempt belongs to someone else.
    Fatal to the current view; the UI sends the user to login. Never retried.
    """
    status_code = 403

    def __init__(self, message: str = "You must be logged in."):
        super().__init__(message, self.status_code)


class NotFoundError(MockTestError):
    """Attempt missing or the test has no questions."""
    status_code = 404

    def __init__(self, message: str = "Not found."):
        super().__init__(message, self.status_code)


class AttemptCompletedError(MockTestError):
    """The attempt was already submitted and cannot be reopened."""
    status_code = 409

    def __init__(self, attempt_id: str):
        self.attempt_id = attempt_id
        super().__init__(f"Attempt {attempt_id} has already been submitted.", self.status_code)


class SubmissionError(MockTestError):
    """Submission could not be persisted. The attempt stays STARTED and may be resubmitted."""
    retryable = True

    def __init__(self, message: str = "Could not submit the test. Please try again."):
        super().__init__(message)

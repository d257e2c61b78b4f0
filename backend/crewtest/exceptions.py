"""
Domain error taxonomy.

Services raise these; main.py maps each family to an HTTP status so routes
never build error responses by hand.
"""


class CrewTestError(Exception):
    """Base class for expected, user-facing failures."""
    status_code = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class RequestValidationFailed(CrewTestError):
    """Malformed or inconsistent input, detected before anything is written."""
    status_code = 422


class NotFound(CrewTestError):
    status_code = 404


class Unauthenticated(CrewTestError):
    status_code = 401


class Forbidden(CrewTestError):
    """Acting identity may not touch this resource."""
    status_code = 403


class BusinessRuleViolation(CrewTestError):
    status_code = 409


class NoEligibleQuestions(BusinessRuleViolation):
    pass


class TestHasAttempts(BusinessRuleViolation):
    # keep pytest from collecting this as a test class
    __test__ = False


class TestInactive(BusinessRuleViolation):
    __test__ = False


class AttemptLimitReached(BusinessRuleViolation):
    pass


class DeadlineExceeded(BusinessRuleViolation):
    pass


class ImportFailed(Exception):
    """
    An import batch hit an unexpected error and was rolled back.

    Carries the summary reported to the caller: nothing imported or skipped,
    and the errors collected before the abort plus one for the failing row.
    """

    def __init__(self, message: str, summary: dict):
        super().__init__(message)
        self.summary = summary

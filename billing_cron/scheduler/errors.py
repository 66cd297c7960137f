"""
Cron-specific exceptions.

The API layer maps these onto HTTP status codes:
- ValidationError -> 400
- NotFoundError -> 404
- ConflictError -> 409

ExternalServiceError never reaches the API layer; it is captured into a
JobRun's error field or a DispatchAttempt's error field.
"""


class BillingCronError(Exception):
    """Base exception for all billing-cron errors."""
    pass


class ValidationError(BillingCronError):
    """Raised for bad or missing input."""
    pass


class UnknownJobTypeError(ValidationError):
    """Raised when a job type is not part of the registry."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"Invalid job type: {job_type}")


class NotFoundError(BillingCronError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")


class ConflictError(BillingCronError):
    """Raised when an operation collides with the current state."""
    pass


class JobAlreadyRunningError(ConflictError):
    """
    Raised when a job type is triggered while a run of it is in flight.

    Enforces the single-flight rule: at most one running JobRun per job type.
    """

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"Job {job_type} is already running")


class InvalidOperationError(BillingCronError):
    """
    Raised when an operation violates a run-state invariant.

    Examples:
    - Completing a JobRun that already reached a terminal status
    - Completing a JobRun with completed_at before started_at
    """
    pass


class ExternalServiceError(BillingCronError):
    """Raised when an external collaborator is unreachable or errors."""

    def __init__(self, service: str, message: str):
        self.service = service
        self.message = message
        super().__init__(f"{service}: {message}")

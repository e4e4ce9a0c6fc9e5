"""Exception types for the email jobs library."""


class EmailJobsError(Exception):
    """Base exception for all email jobs errors."""

    pass


class JobNotFoundError(EmailJobsError):
    """Raised when a job is not found."""

    def __init__(self, job_id: int, message: str = None):
        self.job_id = job_id
        if message is None:
            message = f"Job {job_id} not found"
        super().__init__(message)


class PermanentJobError(EmailJobsError):
    """
    Raised when a job can never succeed, no matter how often it is retried.

    The processor marks such jobs as failed straight away instead of
    returning them to the queue.
    """

    pass


class InvalidPayloadError(PermanentJobError):
    """Raised when a job payload cannot be decoded or does not fit its schema."""

    def __init__(self, job_type: str, message: str):
        self.job_type = job_type
        super().__init__(f"Invalid job data format for {job_type}: {message}")


class UnknownJobTypeError(PermanentJobError):
    """Raised when no executor is registered for a job type."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"Unknown job type: {job_type}")

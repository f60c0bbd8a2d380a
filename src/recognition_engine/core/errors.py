"""Job processing errors."""

from typing import Optional


class JobError(Exception):
    """Base error for the job engine."""


class JobNotFound(JobError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class JobValidationError(JobError):
    """Submission rejected before a job is created."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class IllegalTransition(JobError):
    """Operation not permitted from the job's current status."""

    def __init__(self, job_id: str, status: str, operation: str, reason: str = ""):
        message = f"Cannot {operation} job {job_id} in status {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.job_id = job_id
        self.status = status
        self.operation = operation


class NotClaimable(IllegalTransition):
    def __init__(self, job_id: str, status: str, reason: str = ""):
        super().__init__(job_id, status, "start", reason)


class ResultKindMismatch(IllegalTransition):
    def __init__(self, job_id: str, status: str, expected: str, got: str):
        super().__init__(job_id, status, "complete", f"expected {expected} results, got {got}")
        self.expected = expected
        self.got = got


class StaleJobError(JobError):
    """Conditional write lost against a concurrent update."""

    def __init__(self, job_id: str, expected_version: int):
        super().__init__(f"Job {job_id} changed since version {expected_version}")
        self.job_id = job_id
        self.expected_version = expected_version

"""Submission boundary."""

from proofy.submission.validator import (
    SubmissionPolicy,
    SubmissionRequest,
    validate_submission,
)

__all__ = ["SubmissionPolicy", "SubmissionRequest", "validate_submission"]

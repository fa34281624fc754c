"""Submission eligibility enforcement."""

from resonance.validation.validator import SubmissionResult, SubmissionValidator, submission_hash

__all__ = ["SubmissionResult", "SubmissionValidator", "submission_hash"]

"""
Transfer and claim orchestration.
"""

from stprime.orchestrator.claim import ClaimOrchestrator
from stprime.orchestrator.submission import SubmissionTracker, default_lookup_retry
from stprime.orchestrator.transfer import TransferOrchestrator

__all__ = [
    "TransferOrchestrator",
    "ClaimOrchestrator",
    "SubmissionTracker",
    "default_lookup_retry",
]

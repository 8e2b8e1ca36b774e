from santa.services.exclusions import FeasibilityReport, ParticipantRef, analyze, would_create_cycle
from santa.services.matching import AssignmentError, AssignmentPair, MatchingResult, compute_matching

__all__ = [
    "AssignmentError",
    "AssignmentPair",
    "FeasibilityReport",
    "MatchingResult",
    "ParticipantRef",
    "analyze",
    "compute_matching",
    "would_create_cycle",
]

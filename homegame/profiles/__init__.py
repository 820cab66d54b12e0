"""Player profiles and session reconciliation."""
from .profile import PlayerProfile, SessionReference, SessionSummary
from .reconciler import ProfileReconciler, SessionMetadata

__all__ = [
    "PlayerProfile",
    "ProfileReconciler",
    "SessionMetadata",
    "SessionReference",
    "SessionSummary",
]

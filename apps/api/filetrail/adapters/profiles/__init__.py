"""Profile directory adapters."""

from .base import ProfileDirectory
from .firestore import FirestoreProfileDirectory
from .memory import MemoryProfileDirectory

__all__ = ["FirestoreProfileDirectory", "MemoryProfileDirectory", "ProfileDirectory"]

"""Core data models for Proofy."""

from proofy.models.creation import Creation, CreationStatus, ProjectType
from proofy.models.rights import (
    AuthorshipAllocation,
    AuthorshipCategory,
    HolderField,
    NeighboringCategory,
    NeighboringRightsAllocation,
    RightsHolder,
)

__all__ = [
    "AuthorshipAllocation",
    "AuthorshipCategory",
    "Creation",
    "CreationStatus",
    "HolderField",
    "NeighboringCategory",
    "NeighboringRightsAllocation",
    "ProjectType",
    "RightsHolder",
]

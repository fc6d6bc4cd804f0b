"""
Mapping metadata for entity classes.
"""

from .mapping import (
    AssociationMapping,
    EntityMetadata,
    FieldMapping,
    InheritanceMapping,
    JoinTableMapping,
)
from .registry import MetadataRegistry, metadata_registry

__all__ = [
    "AssociationMapping",
    "EntityMetadata",
    "FieldMapping",
    "InheritanceMapping",
    "JoinTableMapping",
    "MetadataRegistry",
    "metadata_registry",
]

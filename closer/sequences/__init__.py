"""
Sequence Libraries
Static, versioned template and rebuttal collections. Read-only data.
"""
from closer.sequences.library import (
    ContentPack,
    SequenceLibrary,
    TemplateLookup,
    get_sequence_library,
    load_content_pack,
)

__all__ = [
    "ContentPack",
    "SequenceLibrary",
    "TemplateLookup",
    "get_sequence_library",
    "load_content_pack",
]

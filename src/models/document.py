"""Document metadata model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Document:
    """One ingested source file.

    vector_id correlates the record with its points in the vector index and
    defaults to the document id.
    """

    filename: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    vector_id: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.filename:
            raise ValueError("filename must not be empty")
        if not self.vector_id:
            self.vector_id = self.id

"""Enumeration types for FinChat data models."""

from enum import Enum


class SourceType(str, Enum):
    PDF = "pdf"
    CSV = "csv"


class Distance(str, Enum):
    """Vector distance metrics, named as Chroma's hnsw:space values."""

    COSINE = "cosine"
    L2 = "l2"
    IP = "ip"

from __future__ import annotations


class DuplicateRecordError(ValueError):
    """A write hit a uniqueness constraint.

    Raised by both the in-memory and the PostgreSQL repos so services can
    translate it into the matching domain conflict.
    """

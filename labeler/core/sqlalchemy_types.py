from __future__ import annotations

import math
from typing import Any, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator

from labeler.core.exceptions import ValidationError


def validate_embedding(values: Sequence[float], dimension: int) -> list[float]:
    """Return ``values`` as a list of floats or raise if it is partial/non-finite."""

    vector = [float(v) for v in values]
    if len(vector) != dimension:
        raise ValidationError(
            f"Embedding must have exactly {dimension} components, got {len(vector)}"
        )
    if not all(math.isfinite(v) for v in vector):
        raise ValidationError("Embedding contains non-finite components")
    return vector


class EmbeddingVector(TypeDecorator):
    """
    Dialect-aware fixed-dimension vector column.

    Uses pgvector ``VECTOR(n)`` on Postgres and JSON elsewhere. Values are
    validated on the way in, so a row can only hold NULL or a complete vector.
    """

    impl = JSON
    cache_ok = True

    def __init__(self, dimension: int):
        super().__init__()
        self.dimension = dimension

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Vector(self.dimension))
        return dialect.type_descriptor(JSON(none_as_null=True))

    def process_bind_param(self, value: Any, dialect) -> Any:
        if value is None:
            return None
        return validate_embedding(value, self.dimension)

    def process_result_value(self, value: Any, dialect) -> Any:
        if value is None:
            return None
        # pgvector hands back numpy arrays
        if hasattr(value, "tolist"):
            value = value.tolist()
        return [float(v) for v in value]

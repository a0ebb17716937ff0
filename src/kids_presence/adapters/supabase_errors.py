"""Translation of Supabase client failures into core errors."""

from collections.abc import Iterator
from contextlib import contextmanager

import httpx
from postgrest.exceptions import APIError

from kids_presence.domain.errors import DuplicateRecordError, TransportError

_UNIQUE_VIOLATION = "23505"


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise client failures of ``operation`` as core errors."""
    try:
        yield
    except APIError as exc:
        if exc.code == _UNIQUE_VIOLATION:
            raise DuplicateRecordError(f"{operation}: {exc.message}") from exc
        raise TransportError(f"{operation} rejected by store: {exc.message}") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"{operation} failed: {exc}") from exc

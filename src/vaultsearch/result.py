"""Typed error values for the indexing pipeline.

Reading a file or embedding a chunk can fail for reasons outside the
program's control. Those failures are returned, not raised: callers get
either the value or an ``Err`` and must narrow with ``is_err``/``is_ok``
before using it.
"""

from dataclasses import dataclass
from typing import Generic, Literal, TypeGuard, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")

DocumentErrorType = Literal["extension", "read"]
EmbeddingsErrorType = Literal["internal_server_error", "bad_request"]


@dataclass(frozen=True)
class DocumentError:
    """A file could not be turned into a Document."""

    type: DocumentErrorType
    message: str


@dataclass(frozen=True)
class EmbeddingsError:
    """The embeddings service failed for one request."""

    type: EmbeddingsErrorType
    message: str


@dataclass(frozen=True)
class Err(Generic[E]):
    """Wrapper marking a value as a failure."""

    value: E


def err(value: E) -> Err[E]:
    return Err(value)


def is_err(value: Union[T, Err[E]]) -> TypeGuard[Err[E]]:
    return isinstance(value, Err)


def is_ok(value: Union[T, Err[E]]) -> TypeGuard[T]:
    return not isinstance(value, Err)


def unwrap(value: Union[T, Err[E]]) -> T:
    """Return the value, raising if it is an ``Err``.

    Only for call sites where a failure is a programming error.
    """
    if isinstance(value, Err):
        raise ValueError(f"Called unwrap on an error value: {value.value!r}")
    return value

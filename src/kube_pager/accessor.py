from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .util.errors import InvalidConfiguration, MalformedPageResult

# Attribute names generated list-metadata models use for the "continue" field.
CONTINUE_ATTRS: Tuple[str, ...] = ("_continue", "continue_", "continue_token")


@dataclass(frozen=True)
class Page:
    items: Tuple[Any, ...]
    continue_token: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.continue_token)


@runtime_checkable
class PageAccessor(Protocol):
    """
    Structural contract for reading one page result.

    items() returns the page's item sequence, continue_token() the token for the
    next page (None or "" at end of list). Implementations raise AttributeError,
    KeyError or TypeError when the page does not have the expected shape.
    """

    def items(self, page: Any) -> Any:
        ...

    def continue_token(self, page: Any) -> Any:
        ...


def _first_attr(obj: Any, names: Sequence[str]) -> Any:
    for name in names:
        if hasattr(obj, name):
            return getattr(obj, name)
    raise AttributeError(f"{type(obj).__name__} has none of the attributes: {', '.join(names)}")


class MappingAccessor:
    """Decoded JSON list bodies: {"items": [...], "metadata": {"continue": "..."}}."""

    def items(self, page: Any) -> Any:
        return page["items"]

    def continue_token(self, page: Any) -> Any:
        metadata = page.get("metadata")
        if metadata is None:
            return None
        return metadata.get("continue")


class AttributeAccessor:
    """
    Generated client models: page.items plus page.metadata._continue.

    Falls back to a continue attribute on the page itself when there is no
    metadata attribute at all.
    """

    def __init__(self, items_attr: str = "items", token_attrs: Sequence[str] = CONTINUE_ATTRS) -> None:
        self.items_attr = items_attr
        self.token_attrs = tuple(token_attrs)

    def items(self, page: Any) -> Any:
        return getattr(page, self.items_attr)

    def continue_token(self, page: Any) -> Any:
        if hasattr(page, "metadata"):
            metadata = page.metadata
            if metadata is None:
                return None
            return _first_attr(metadata, self.token_attrs)
        return _first_attr(page, self.token_attrs)


class MethodAccessor:
    """Page types exposing get_items() and get_continue() accessors."""

    def items(self, page: Any) -> Any:
        return page.get_items()

    def continue_token(self, page: Any) -> Any:
        getter = getattr(page, "get_continue", None) or getattr(page, "get_continue_token")
        return getter()


class AutoAccessor:
    """Picks mapping, method or attribute access from the page's shape."""

    def __init__(self) -> None:
        self._mapping = MappingAccessor()
        self._methods = MethodAccessor()
        self._attributes = AttributeAccessor()

    def _select(self, page: Any) -> PageAccessor:
        if isinstance(page, Mapping):
            return self._mapping
        if callable(getattr(page, "get_items", None)):
            return self._methods
        if hasattr(page, "items"):
            return self._attributes
        raise MalformedPageResult(f"Unsupported page result type: {type(page).__name__}")

    def items(self, page: Any) -> Any:
        return self._select(page).items(page)

    def continue_token(self, page: Any) -> Any:
        return self._select(page).continue_token(page)


class TypedAccessor:
    """Rejects pages that are not instances of result_type before delegating."""

    def __init__(self, result_type: type, inner: Optional[PageAccessor] = None) -> None:
        self.result_type = result_type
        self.inner = inner if inner is not None else AutoAccessor()

    def _check(self, page: Any) -> None:
        if not isinstance(page, self.result_type):
            raise MalformedPageResult(
                f"Expected {self.result_type.__name__} page result, got {type(page).__name__}"
            )

    def items(self, page: Any) -> Any:
        self._check(page)
        return self.inner.items(page)

    def continue_token(self, page: Any) -> Any:
        self._check(page)
        return self.inner.continue_token(page)


def resolve_accessor(descriptor: Any = None) -> PageAccessor:
    """
    Turn a result descriptor into an accessor.

    None -> AutoAccessor, a class -> TypedAccessor over AutoAccessor, an object
    implementing PageAccessor -> itself.
    """
    if descriptor is None:
        return AutoAccessor()
    if isinstance(descriptor, type):
        return TypedAccessor(descriptor)
    if isinstance(descriptor, PageAccessor):
        return descriptor
    raise InvalidConfiguration(f"Unsupported page result descriptor: {descriptor!r}")


def extract_page(page: Any, accessor: PageAccessor) -> Page:
    """
    Split a page result into its items and continue token.

    An empty item list is valid; a None or non-sequence item list, or a
    non-string token, raises MalformedPageResult. An empty token is returned
    as None.
    """
    if page is None:
        raise MalformedPageResult("Page result is None")
    try:
        raw_items = accessor.items(page)
        raw_token = accessor.continue_token(page)
    except MalformedPageResult:
        raise
    except (AttributeError, KeyError, TypeError) as e:
        raise MalformedPageResult(
            f"{type(page).__name__} does not expose items and a continue token: {e}"
        ) from e

    if raw_items is None:
        raise MalformedPageResult(f"{type(page).__name__} has null items")
    if isinstance(raw_items, (str, bytes, Mapping)) or not isinstance(raw_items, Iterable):
        raise MalformedPageResult(
            f"{type(page).__name__} items must be a sequence, got {type(raw_items).__name__}"
        )
    if raw_token is not None and not isinstance(raw_token, str):
        raise MalformedPageResult(
            f"{type(page).__name__} continue token must be a string, got {type(raw_token).__name__}"
        )
    return Page(items=tuple(raw_items), continue_token=raw_token or None)

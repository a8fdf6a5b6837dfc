from __future__ import annotations

from .accessor import (
    AttributeAccessor,
    AutoAccessor,
    MappingAccessor,
    MethodAccessor,
    Page,
    PageAccessor,
    TypedAccessor,
    extract_page,
    resolve_accessor,
)
from .pager import PageIterator, PageRequest, PageStream, Pager, collect_concurrently
from .util.errors import ApiError, FetchFailed, InvalidConfiguration, MalformedPageResult, PagerError

__all__ = [
    "ApiError",
    "AttributeAccessor",
    "AutoAccessor",
    "FetchFailed",
    "InvalidConfiguration",
    "MalformedPageResult",
    "MappingAccessor",
    "MethodAccessor",
    "Page",
    "PageAccessor",
    "PageIterator",
    "PageRequest",
    "PageStream",
    "Pager",
    "PagerError",
    "TypedAccessor",
    "collect_concurrently",
    "extract_page",
    "resolve_accessor",
]

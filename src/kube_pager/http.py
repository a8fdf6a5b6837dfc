from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests

from .pager import PageRequest
from .util.errors import ApiError, MalformedPageResult

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "kube-pager"


def create_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    session = requests.Session()
    session.headers.update({"Accept": "application/json", "User-Agent": user_agent})
    return session


class ListEndpoint:
    """
    Fetch function for a list endpoint such as GET /api/v1/namespaces.

    Each call sends `limit` and, past the first page, `continue`. The decoded
    JSON body is returned for MappingAccessor to read. Non-2xx responses raise
    ApiError carrying the response body; transport errors propagate unchanged.

    No locking is done here: callers sharing one session across threads own
    that choice.
    """

    def __init__(
        self,
        session: requests.Session,
        base_url: str,
        path: str,
        *,
        field_selector: Optional[str] = None,
        label_selector: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.session = session
        self.url = base_url.rstrip("/") + "/" + path.lstrip("/")
        self.field_selector = field_selector
        self.label_selector = label_selector
        self.timeout = timeout
        self.headers = dict(headers or {})

    def params_for(self, request: PageRequest) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": request.limit}
        if request.continue_token:
            params["continue"] = request.continue_token
        if self.field_selector:
            params["fieldSelector"] = self.field_selector
        if self.label_selector:
            params["labelSelector"] = self.label_selector
        return params

    def __call__(self, request: PageRequest) -> Any:
        resp = self.session.get(
            self.url,
            params=self.params_for(request),
            headers=self.headers or None,
            timeout=self.timeout,
        )
        if not 200 <= resp.status_code < 300:
            raise ApiError(resp.status_code, resp.reason, body=resp.text)
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedPageResult(f"List response from {self.url} is not JSON: {e}") from e

    def __repr__(self) -> str:
        return f"ListEndpoint({self.url!r})"

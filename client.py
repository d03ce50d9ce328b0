"""
Small client for the portfolio API, as used by the site renderer.

A failed request is retried exactly once, after a short pause, when the API
reports that the database is not connected or answers with a 500.
"""

import time
from typing import Any, Optional

import requests

import config
from logs import get_logger

log = get_logger(__name__)

RETRY_DELAY = 0.5


class ApiError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiClient:
    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: float = 10, session: Optional[requests.Session] = None):
        self.base_url = (base_url or config.PORTFOLIO_API_URL).rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _transient(self, response: requests.Response, body: dict) -> bool:
        message = str(body.get("message", ""))
        return response.status_code == 500 or "Database not connected" in message

    def request(self, method: str, path: str, json: Any = None, retry: bool = True, **kwargs) -> Any:
        headers = dict(kwargs.pop("headers", {}) or {})
        if self.token:
            headers.setdefault("Authorization", f"Bearer {self.token}")
        response = self.session.request(method, f"{self.base_url}{path}", json=json, headers=headers,
                                        timeout=self.timeout, **kwargs)
        if response.ok:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if retry and self._transient(response, body):
            log.warning("api_retry", method=method, path=path, status=response.status_code)
            time.sleep(RETRY_DELAY)
            return self.request(method, path, json=json, retry=False, headers=headers, **kwargs)
        raise ApiError(body.get("message") or f"HTTP error! status: {response.status_code}",
                       response.status_code)

    def get(self, path: str, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path: str, data: Any = None, **kwargs):
        return self.request("POST", path, json=data, **kwargs)

    def put(self, path: str, data: Any = None, **kwargs):
        return self.request("PUT", path, json=data, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.request("DELETE", path, **kwargs)

    def login(self, email: str, password: str) -> dict:
        result = self.post("/api/auth/login", {"email": email, "password": password})
        self.token = result["token"]
        return result

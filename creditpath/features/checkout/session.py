"""
Session collaborators for the checkout flow.

SessionStore holds the caller's bearer token; Navigator moves the user to
another URL. Both are injected so the orchestrator and billing client never
touch global state.
"""
from collections import deque
from typing import Deque, Optional, Protocol


class SessionStore(Protocol):
    def get_token(self) -> Optional[str]:
        ...

    def set_token(self, token: str) -> None:
        ...

    def clear_token(self) -> None:
        ...


class Navigator(Protocol):
    def redirect(self, url: str) -> None:
        ...


class InMemorySessionStore:
    """Token holder for one session."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None


class RecordingNavigator:
    """Navigator that records redirects for the caller to act on.

    With `max_history` set only the most recent redirects are kept.
    """

    def __init__(self, max_history: Optional[int] = None):
        self._history: Deque[str] = deque(maxlen=max_history)

    def redirect(self, url: str) -> None:
        self._history.append(url)

    @property
    def history(self) -> list:
        return list(self._history)

    @property
    def last(self) -> Optional[str]:
        return self._history[-1] if self._history else None

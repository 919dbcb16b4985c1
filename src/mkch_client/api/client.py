from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import requests
from bs4 import BeautifulSoup
from pydantic import TypeAdapter, ValidationError

from mkch_client.config import DEFAULT_BASE_URL, ApiConfig
from mkch_client.schemas import Board, Comment, Thread, ThreadDetail

from .errors import MkchApiError

logger = logging.getLogger(__name__)

_BOARDS = TypeAdapter(list[Board])
_THREADS = TypeAdapter(list[Thread])
_THREAD_DETAIL = TypeAdapter(ThreadDetail)
_COMMENTS = TypeAdapter(list[Comment])

_FORM_OK_STATUS = {200, 302}


@dataclass(frozen=True, slots=True)
class UploadFile:
    name: str
    filename: str
    mime_type: str
    data: bytes


def extract_csrf_token(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    field = soup.select_one("input[name=csrfmiddlewaretoken]")
    if field is None:
        return ""
    value = field.get("value")
    return value.strip() if isinstance(value, str) else ""


class MkchClient:
    """Thin HTTP client for the mkch JSON API and its posting forms.

    Raises ``requests.RequestException`` on transport errors and
    ``MkchApiError`` for bad status codes or unusable bodies.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_url: str | None = None,
        session: requests.Session | None = None,
        timeout_seconds: float = 20.0,
        user_agent: str = "mkch-client/0.1.0",
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.base_url = base_url.rstrip("/")
        self.api_url = (api_url or f"{self.base_url}/api").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", user_agent)
        self.session.headers.setdefault("Accept", "application/json")

    @classmethod
    def from_config(
        cls,
        config: ApiConfig,
        *,
        session: requests.Session | None = None,
    ) -> MkchClient:
        return cls(
            base_url=config.base_url,
            api_url=config.resolved_api_url,
            session=session,
            timeout_seconds=config.timeout_seconds,
            user_agent=config.user_agent,
        )

    def fetch_boards(self) -> list[Board]:
        return self._get_json(f"{self.api_url}/boards/", _BOARDS, description="boards")

    def fetch_threads(self, board_code: str) -> list[Thread]:
        return self._get_json(
            f"{self.api_url}/board/{board_code}",
            _THREADS,
            description=f"threads board={board_code}",
        )

    def fetch_thread_detail(self, board_code: str, thread_id: int) -> ThreadDetail:
        return self._get_json(
            f"{self.api_url}/board/{board_code}/thread/{thread_id}",
            _THREAD_DETAIL,
            description=f"thread board={board_code} id={thread_id}",
        )

    def fetch_comments(self, board_code: str, thread_id: int) -> list[Comment]:
        return self._get_json(
            f"{self.api_url}/board/{board_code}/thread/{thread_id}/comments",
            _COMMENTS,
            description=f"comments board={board_code} thread={thread_id}",
        )

    def create_thread(
        self,
        board_code: str,
        *,
        title: str,
        text: str,
        files: Sequence[UploadFile] = (),
    ) -> None:
        self._submit_form(
            f"{self.base_url}/boards/board/{board_code}/new",
            fields={"title": title, "text": text},
            files=files,
            description=f"create thread board={board_code}",
        )

    def add_comment(
        self,
        board_code: str,
        thread_id: int,
        *,
        text: str,
        files: Sequence[UploadFile] = (),
    ) -> None:
        self._submit_form(
            f"{self.base_url}/boards/board/{board_code}/thread/{thread_id}/comment",
            fields={"text": text},
            files=files,
            description=f"add comment board={board_code} thread={thread_id}",
        )

    def _get_json(self, url: str, adapter: TypeAdapter[Any], *, description: str) -> Any:
        logger.info("GET %s", url)
        response = self.session.get(url, timeout=self.timeout_seconds)
        if response.status_code != 200:
            raise MkchApiError(f"failed to fetch {description}", status_code=response.status_code)

        body = response.content
        if not body:
            raise MkchApiError(
                f"empty response for {description}", status_code=response.status_code
            )

        try:
            return adapter.validate_json(body)
        except ValidationError as exc:
            raise MkchApiError(f"undecodable response for {description}") from exc

    def _submit_form(
        self,
        form_url: str,
        *,
        fields: dict[str, str],
        files: Sequence[UploadFile],
        description: str,
    ) -> None:
        form = self.session.get(form_url, timeout=self.timeout_seconds)
        if form.status_code != 200:
            raise MkchApiError(
                f"failed to load form for {description}", status_code=form.status_code
            )

        token = extract_csrf_token(form.text)
        if not token:
            raise MkchApiError(f"csrf token not found for {description}")

        upload = [
            (item.name, (item.filename, item.data, item.mime_type))
            for item in files
        ]
        response = self.session.post(
            form_url,
            data={"csrfmiddlewaretoken": token, **fields},
            files=upload or None,
            headers={"Referer": form_url},
            timeout=self.timeout_seconds,
            allow_redirects=False,
        )
        if response.status_code not in _FORM_OK_STATUS:
            raise MkchApiError(f"{description} rejected", status_code=response.status_code)
        logger.info("%s ok status=%s", description, response.status_code)

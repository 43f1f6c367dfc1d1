"""
Async client for the contractor review workspace.

AutosaveDebouncer holds the rubric save until edits stop for `delay` seconds:
each touch() restarts the timer, and when it fires exactly one save of the
full current values goes out (skipped while every field is empty). Saves
already in flight are left alone.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from scriptdesk.rubric import RUBRIC_FIELDS, empty_rubric, has_any_value

logger = logging.getLogger(__name__)

AUTOSAVE_DELAY_SEC = 2.0

SaveCallback = Callable[[dict[str, Any]], Awaitable[Any]]


class AutosaveDebouncer:
    def __init__(self, save: SaveCallback, delay: float = AUTOSAVE_DELAY_SEC):
        self._save = save
        self.delay = delay
        self.values: dict[str, Any] = empty_rubric()
        self._timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def touch(self, values: dict[str, Any] | None = None) -> None:
        """Record an edit and restart the countdown."""
        if values is not None:
            self.values = dict(values)
        self.cancel()
        self._timer = asyncio.create_task(self._countdown())

    def cancel(self) -> None:
        if self.pending:
            self._timer.cancel()
        self._timer = None

    async def _countdown(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        self._dispatch()

    def _dispatch(self) -> asyncio.Task | None:
        if not has_any_value(self.values):
            return None
        task = asyncio.create_task(self._save(dict(self.values)))
        self._inflight.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[autosave] save failed: {exc}")

    async def flush(self) -> None:
        """Fire a pending save now and wait for every save in flight."""
        if self.pending:
            self.cancel()
            self._dispatch()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)


class ReviewWorkspace:
    """One contractor's review session for a script over the HTTP API.

    The review-level rubric (the one submission checks) always autosaves to
    the review record. On the per-page tier each page also carries its own
    rubric, edited with ``scope="page"`` and saved before the viewer moves on.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        script_id: int,
        delay: float = AUTOSAVE_DELAY_SEC,
        client: httpx.AsyncClient | None = None,
    ):
        self.script_id = script_id
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=30.0)
        self._headers = {"Authorization": f"Bearer {token}"}
        self.review_id: int | None = None
        self.granularity: str | None = None
        self.viewer_mode: str | None = None
        self.file_url: str | None = None
        self.current_page = 1
        self.page_notes: dict[int, str] = {}
        self.saves = 0
        self.autosave = AutosaveDebouncer(self._save_review, delay=delay)
        self.page_autosave = AutosaveDebouncer(self._save_page, delay=delay)

    @property
    def per_page(self) -> bool:
        return self.granularity == "per_page"

    @property
    def values(self) -> dict[str, Any]:
        return self.autosave.values

    @property
    def page_values(self) -> dict[str, Any]:
        return self.page_autosave.values

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        resp = await self._client.request(method, url, headers=self._headers, **kwargs)
        resp.raise_for_status()
        return resp

    async def open(self) -> dict[str, Any]:
        resp = await self._request("POST", "/api/reviews/open", json={"script_id": self.script_id})
        data = resp.json()
        self.review_id = data["review"]["id"]
        self.granularity = data["granularity"]
        self.viewer_mode = data["viewer_mode"]
        self.file_url = data.get("file_url")
        self.page_notes = {int(k): v for k, v in (data.get("page_notes") or {}).items()}
        self.autosave.values = {f: data["review"].get(f) for f in RUBRIC_FIELDS}
        if self.per_page:
            await self._load_page(self.current_page)
        return data

    def set_field(self, field: str, value: Any, scope: str = "review") -> None:
        """Edit one rubric field; `scope` is "review" or, on the per-page tier, "page"."""
        if field not in RUBRIC_FIELDS:
            raise KeyError(field)
        if scope == "review":
            debouncer = self.autosave
        elif scope == "page":
            if not self.per_page:
                raise ValueError("Per-page rubrics are only available for the per-page review tier")
            debouncer = self.page_autosave
        else:
            raise ValueError(f"Unknown rubric scope: {scope}")
        values = dict(debouncer.values)
        values[field] = value
        debouncer.touch(values)

    async def _save_review(self, values: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request("PUT", f"/api/reviews/{self.review_id}/rubric", json=values)
        self.saves += 1
        return resp.json()

    async def _save_page(self, values: dict[str, Any]) -> dict[str, Any]:
        url = f"/api/reviews/{self.review_id}/pages/{self.current_page}/rubric"
        resp = await self._request("PUT", url, json=values)
        self.saves += 1
        return resp.json()

    async def _load_page(self, page: int) -> None:
        resp = await self._request("GET", f"/api/reviews/{self.review_id}/pages/{page}/rubric")
        data = resp.json()
        self.page_autosave.values = {f: data.get(f) for f in RUBRIC_FIELDS}

    async def switch_page(self, page: int) -> None:
        """Move the viewer to another page; per-page rubrics save before switching."""
        if self.per_page:
            await self.page_autosave.flush()
            self.current_page = page
            await self._load_page(page)
        else:
            self.current_page = page

    async def save_page_note(self, content: str, page: int | None = None) -> dict[str, Any] | None:
        page = page or self.current_page
        resp = await self._request(
            "PUT", f"/api/reviews/{self.review_id}/pages/{page}/note", json={"note_content": content}
        )
        if content.strip():
            self.page_notes[page] = content
        else:
            self.page_notes.pop(page, None)
        return resp.json()

    async def submit(self, recommendation: str | None = None, overall_notes: str | None = None) -> dict[str, Any]:
        await self.page_autosave.flush()
        await self.autosave.flush()
        resp = await self._request(
            "POST",
            f"/api/reviews/{self.review_id}/submit",
            json={"recommendation": recommendation, "overall_notes": overall_notes},
        )
        return resp.json()

    async def aclose(self) -> None:
        for debouncer in (self.autosave, self.page_autosave):
            debouncer.cancel()
            await debouncer.wait_idle()
        await self._client.aclose()

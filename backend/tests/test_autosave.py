"""
Tests for the workspace autosave debouncer and review workspace client.
"""
import asyncio

import httpx
import pytest

from conftest import contractor_headers, create_contractor, submit_script
from scriptdesk.client.workspace import AUTOSAVE_DELAY_SEC, AutosaveDebouncer, ReviewWorkspace
from scriptdesk.main import app

DELAY = 0.05


class Recorder:
    def __init__(self, pause: float = 0.0):
        self.calls: list[dict] = []
        self.pause = pause

    async def __call__(self, values):
        if self.pause:
            await asyncio.sleep(self.pause)
        self.calls.append(values)


class TestAutosaveDebouncer:
    def test_default_delay(self):
        assert AUTOSAVE_DELAY_SEC == 2.0

    async def test_burst_of_edits_saves_once_with_latest_values(self):
        save = Recorder()
        deb = AutosaveDebouncer(save, delay=DELAY)
        deb.touch({"plot_rating": 3})
        deb.touch({"plot_rating": 3, "plot_notes": "Draft"})
        deb.touch({"plot_rating": 4, "plot_notes": "Final"})

        await asyncio.sleep(DELAY * 4)
        await deb.wait_idle()
        assert save.calls == [{"plot_rating": 4, "plot_notes": "Final"}]

    async def test_edit_within_window_resets_timer(self):
        save = Recorder()
        deb = AutosaveDebouncer(save, delay=DELAY * 2)
        deb.touch({"title_response": "a"})
        await asyncio.sleep(DELAY)
        deb.touch({"title_response": "ab"})
        await asyncio.sleep(DELAY * 1.5)
        # first timer would have fired by now
        assert save.calls == []
        await asyncio.sleep(DELAY * 2)
        await deb.wait_idle()
        assert save.calls == [{"title_response": "ab"}]

    async def test_no_save_when_every_field_is_empty(self):
        save = Recorder()
        deb = AutosaveDebouncer(save, delay=DELAY)
        deb.touch({"title_response": "   ", "plot_rating": None})
        await asyncio.sleep(DELAY * 3)
        assert save.calls == []
        assert not deb.pending

    async def test_separate_pauses_give_separate_saves(self):
        save = Recorder()
        deb = AutosaveDebouncer(save, delay=DELAY)
        deb.touch({"plot_rating": 1})
        await asyncio.sleep(DELAY * 3)
        deb.touch({"plot_rating": 2})
        await asyncio.sleep(DELAY * 3)
        await deb.wait_idle()
        assert save.calls == [{"plot_rating": 1}, {"plot_rating": 2}]

    async def test_inflight_save_is_not_cancelled_by_new_edit(self):
        save = Recorder(pause=DELAY * 3)
        deb = AutosaveDebouncer(save, delay=DELAY)
        deb.touch({"plot_rating": 1})
        await asyncio.sleep(DELAY * 1.5)
        # the first save is now in flight
        deb.touch({"plot_rating": 2})
        await asyncio.sleep(DELAY * 2)
        await deb.wait_idle()
        assert {"plot_rating": 1} in save.calls
        await asyncio.sleep(DELAY * 4)
        await deb.wait_idle()
        assert save.calls == [{"plot_rating": 1}, {"plot_rating": 2}]

    async def test_flush_saves_immediately(self):
        save = Recorder()
        deb = AutosaveDebouncer(save, delay=10)
        deb.touch({"catharsis_notes": "Earned ending"})
        await deb.flush()
        assert save.calls == [{"catharsis_notes": "Earned ending"}]
        assert not deb.pending

    async def test_failed_save_does_not_break_debouncer(self):
        attempts = []

        async def failing(values):
            attempts.append(values)
            raise RuntimeError("network down")

        deb = AutosaveDebouncer(failing, delay=DELAY)
        deb.touch({"plot_rating": 5})
        await asyncio.sleep(DELAY * 3)
        await deb.wait_idle()
        deb.touch({"plot_rating": 4})
        await asyncio.sleep(DELAY * 3)
        await deb.wait_idle()
        assert attempts == [{"plot_rating": 5}, {"plot_rating": 4}]


async def _assigned(client, admin_headers, session, tier_id):
    script = (await submit_script(client, tier_id=tier_id)).json()["script"]
    judge = await create_contractor(session)
    resp = await client.post(
        f"/api/admin/scripts/{script['id']}/assign", json={"judge_id": judge.id}, headers=admin_headers
    )
    assert resp.status_code == 200, resp.text
    headers = await contractor_headers(client)
    return script["id"], headers


def _workspace(headers, script_id, delay=DELAY) -> ReviewWorkspace:
    token = headers["Authorization"].removeprefix("Bearer ")
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    return ReviewWorkspace("http://test", token, script_id, delay=delay, client=http)


class TestReviewWorkspace:
    async def test_whole_script_review_saves_and_reopens(self, client, admin_headers, session):
        script_id, headers = await _assigned(client, admin_headers, session, "free")
        ws = _workspace(headers, script_id)
        await ws.open()
        assert not ws.per_page
        assert all(v is None for v in ws.values.values())

        ws.set_field("title_response", "Fits the tone.")
        ws.set_field("plot_rating", 4)
        ws.set_field("characters_rating", 5)
        await asyncio.sleep(DELAY * 4)
        await ws.autosave.wait_idle()
        assert ws.saves == 1

        again = _workspace(headers, script_id)
        await again.open()
        assert again.values["plot_rating"] == 4
        assert again.values["title_response"] == "Fits the tone."
        await again.aclose()

        with pytest.raises(ValueError):
            ws.set_field("plot_notes", "x", scope="page")
        with pytest.raises(KeyError):
            ws.set_field("not_a_field", 1)

        result = await ws.submit(recommendation="approved")
        assert result["script"]["status"] == "reviewed"
        await ws.aclose()

    async def test_submit_flushes_pending_edits(self, client, admin_headers, session):
        script_id, headers = await _assigned(client, admin_headers, session, "free")
        ws = _workspace(headers, script_id, delay=10)
        await ws.open()
        ws.set_field("title_response", "Strong hook.")
        ws.set_field("plot_rating", 3)
        ws.set_field("characters_rating", 3)
        assert ws.saves == 0

        result = await ws.submit()
        assert ws.saves == 1
        assert result["review"]["plot_rating"] == 3
        assert result["script"]["status"] == "reviewed"
        await ws.aclose()

    async def test_per_page_tier_writes_review_and_page_rubrics(self, client, admin_headers, session):
        script_id, headers = await _assigned(client, admin_headers, session, "tier3")
        ws = _workspace(headers, script_id, delay=10)
        await ws.open()
        assert ws.per_page
        assert ws.current_page == 1

        ws.set_field("title_response", "Title lands.")
        ws.set_field("plot_rating", 5)
        ws.set_field("characters_rating", 4)
        ws.set_field("plot_notes", "Cold open works.", scope="page")
        assert ws.values["plot_notes"] is None
        assert ws.page_values["plot_notes"] == "Cold open works."

        await ws.switch_page(2)
        assert ws.current_page == 2
        assert ws.saves == 1
        assert all(v is None for v in ws.page_values.values())

        page_one = await client.get(f"/api/reviews/{ws.review_id}/pages/1/rubric", headers=headers)
        assert page_one.json()["plot_notes"] == "Cold open works."

        await ws.switch_page(1)
        assert ws.page_values["plot_notes"] == "Cold open works."

        result = await ws.submit(recommendation="consider")
        assert ws.saves == 2
        assert result["script"]["status"] == "reviewed"
        assert result["review"]["plot_rating"] == 5
        assert result["review"]["plot_notes"] is None
        await ws.aclose()

    async def test_page_switch_skips_save_when_page_untouched(self, client, admin_headers, session):
        script_id, headers = await _assigned(client, admin_headers, session, "tier3")
        ws = _workspace(headers, script_id, delay=10)
        await ws.open()
        await ws.switch_page(3)
        assert ws.saves == 0
        assert ws.current_page == 3
        await ws.aclose()

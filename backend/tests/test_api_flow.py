"""
End-to-end API tests: intake -> assignment -> workspace -> submission -> viewer / export.
"""
import pytest
import sqlalchemy as sa

from conftest import contractor_headers, create_contractor, submit_script
from scriptdesk.models import Contractor, ContractorStatus, ScriptReview
from scriptdesk.routes_auth import hash_password, verify_password
from scriptdesk.services import intake

RUBRIC = {
    "title_response": "The title promises a thriller and delivers one.",
    "plot_rating": 4,
    "plot_notes": "Escalates well.",
    "characters_rating": 5,
    "characters_notes": "Memorable lead.",
    "dialogue_rating": 3,
    "production_budget_rating": 6,
    "production_budget_notes": "Contained locations.",
}


async def _assigned_workspace(client, admin_headers, session, tier_id="free"):
    resp = await submit_script(client, tier_id=tier_id)
    assert resp.status_code == 201, resp.text
    script = resp.json()["script"]

    judge = await create_contractor(session)
    resp = await client.post(
        f"/api/admin/scripts/{script['id']}/assign", json={"judge_id": judge.id}, headers=admin_headers
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "assigned"

    headers = await contractor_headers(client)
    resp = await client.post("/api/reviews/open", json={"script_id": script["id"]}, headers=headers)
    assert resp.status_code == 200, resp.text
    return script, judge, headers, resp.json()


class TestIntake:
    async def test_free_submission_needs_no_payment(self, client):
        resp = await submit_script(client, tier_id="free")
        assert resp.status_code == 201
        body = resp.json()
        assert body["checkout_url"] is None
        assert body["script"]["status"] == "pending"
        assert body["script"]["payment_status"] == "paid"
        assert body["script"]["amount"] == 0

    async def test_paid_submission_opens_checkout(self, client, monkeypatch):
        captured = {}

        async def fake_checkout(payload, script_id):
            captured.update(payload, script_id=script_id)
            return {"id": "cs_test_123", "url": "https://checkout.example/cs_test_123"}

        monkeypatch.setattr(intake, "create_checkout_session", fake_checkout)
        resp = await submit_script(client, tier_id="tier2", discount_code="honey25")
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["checkout_url"] == "https://checkout.example/cs_test_123"
        assert body["script"]["payment_status"] == "pending"
        assert body["script"]["amount"] == 56250
        assert body["script"]["original_amount"] == 75000
        assert captured["amount"] == 56250
        assert captured["discountCode"] == "HONEY25"
        assert captured["tierId"] == "tier2"

        async def fake_status(session_id):
            assert session_id == "cs_test_123"
            return "paid"

        monkeypatch.setattr(intake, "fetch_session_status", fake_status)
        resp = await client.post("/api/payments/confirm", json={"session_id": "cs_test_123"})
        assert resp.status_code == 200
        assert resp.json()["payment_status"] == "paid"

    @pytest.mark.parametrize(
        "provider_status,expected",
        [("unpaid", "pending"), ("paid", "paid"), ("expired", "failed")],
    )
    async def test_payment_confirmation_status(self, client, monkeypatch, provider_status, expected):
        async def fake_checkout(payload, script_id):
            return {"id": "cs_test_456", "url": "https://checkout.example/cs_test_456"}

        async def fake_status(session_id):
            return provider_status

        monkeypatch.setattr(intake, "create_checkout_session", fake_checkout)
        monkeypatch.setattr(intake, "fetch_session_status", fake_status)
        resp = await submit_script(client, tier_id="tier1")
        assert resp.status_code == 201, resp.text

        resp = await client.post("/api/payments/confirm", json={"session_id": "cs_test_456"})
        assert resp.status_code == 200
        assert resp.json()["payment_status"] == expected

    async def test_invalid_discount_creates_nothing(self, client, admin_headers):
        resp = await submit_script(client, tier_id="tier1", discount_code="WRONG")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid discount code"
        listed = await client.get("/api/admin/scripts", headers=admin_headers)
        assert listed.json() == []

    async def test_missing_fields(self, client):
        resp = await client.post("/api/scripts", data={"title": "Only a title"})
        assert resp.status_code == 400

    async def test_wrong_file_type(self, client):
        resp = await submit_script(client, filename="draft.txt")
        assert resp.status_code == 400

    async def test_oversized_file(self, client):
        resp = await client.post(
            "/api/scripts",
            data={"title": "Epic", "author_name": "A", "author_email": "a@example.com", "tier_id": "free"},
            files={"file": ("epic.pdf", b"0" * (10 * 1024 * 1024 + 1), "application/pdf")},
        )
        assert resp.status_code == 413

    async def test_payment_provider_failure_is_502(self, client, monkeypatch, admin_headers):
        async def broken(payload, script_id):
            raise intake.PaymentError("Payment provider unavailable")

        monkeypatch.setattr(intake, "create_checkout_session", broken)
        resp = await submit_script(client, tier_id="tier1")
        assert resp.status_code == 502
        scripts = (await client.get("/api/admin/scripts", headers=admin_headers)).json()
        assert scripts[0]["payment_status"] == "failed"


class TestContractors:
    async def test_signup_approve_login(self, client, admin_headers):
        payload = {"name": "Pat", "email": "Pat@Example.com", "password": "secret123"}
        resp = await client.post("/api/contractors/signup", json=payload)
        assert resp.status_code == 201
        contractor = resp.json()
        assert contractor["status"] == "pending"
        assert contractor["email"] == "pat@example.com"

        dup = await client.post("/api/contractors/signup", json=payload)
        assert dup.status_code == 409

        login = await client.post("/api/auth/contractor/login", json={"email": "pat@example.com", "password": "secret123"})
        assert login.status_code == 403

        resp = await client.post(f"/api/admin/contractors/{contractor['id']}/approve", headers=admin_headers)
        assert resp.json()["status"] == "approved"

        login = await client.post("/api/auth/contractor/login", json={"email": "pat@example.com", "password": "secret123"})
        assert login.status_code == 200
        assert login.json()["role"] == "contractor"

    async def test_wrong_password(self, client, session):
        await create_contractor(session)
        resp = await client.post("/api/auth/contractor/login", json={"email": "reader@example.com", "password": "nope"})
        assert resp.status_code == 401

    async def test_password_stored_as_bcrypt(self, client, session):
        resp = await client.post(
            "/api/contractors/signup", json={"name": "Bo", "email": "bo@example.com", "password": "hunter22"}
        )
        assert resp.status_code == 201
        contractor = await session.get(Contractor, resp.json()["id"])
        assert contractor.password_hash.startswith("$2")
        assert "hunter22" not in contractor.password_hash
        assert verify_password("hunter22", contractor.password_hash)
        assert not verify_password("hunter23", contractor.password_hash)
        assert not verify_password("hunter22", "legacy$abcdef")
        assert hash_password("hunter22") != contractor.password_hash

    async def test_overlong_password_rejected(self, client):
        resp = await client.post(
            "/api/contractors/signup", json={"name": "Bo", "email": "bo@example.com", "password": "x" * 73}
        )
        assert resp.status_code == 422
        # 40 characters but 80 bytes
        resp = await client.post(
            "/api/contractors/signup", json={"name": "Bo", "email": "bo@example.com", "password": "\u00e9" * 40}
        )
        assert resp.status_code == 422

    async def test_delete_releases_assigned_scripts(self, client, admin_headers, session):
        script, judge, _, _ = await _assigned_workspace(client, admin_headers, session)
        resp = await client.delete(f"/api/admin/contractors/{judge.id}", headers=admin_headers)
        assert resp.json()["scripts_released"] == 1
        script = (await client.get(f"/api/admin/scripts/{script['id']}", headers=admin_headers)).json()
        assert script["status"] == "pending"
        assert script["assigned_judge_id"] is None

    async def test_unapproved_contractor_cannot_be_assigned(self, client, admin_headers, session):
        script = (await submit_script(client)).json()["script"]
        judge = await create_contractor(session, status=ContractorStatus.pending)
        resp = await client.post(
            f"/api/admin/scripts/{script['id']}/assign", json={"judge_id": judge.id}, headers=admin_headers
        )
        assert resp.status_code == 400


class TestReviewFlow:
    async def test_end_to_end(self, client, admin_headers, session):
        script, judge, headers, workspace = await _assigned_workspace(client, admin_headers, session)
        assert workspace["granularity"] == "whole_script"
        assert workspace["viewer_mode"] == "pdf"
        assert "/api/files/signed/scripts/" in workspace["file_url"]
        review_id = workspace["review"]["id"]

        # reopening returns the same review
        again = await client.post("/api/reviews/open", json={"script_id": script["id"]}, headers=headers)
        assert again.json()["review"]["id"] == review_id

        mine = await client.get("/api/contractor/scripts", headers=headers)
        assert [s["id"] for s in mine.json()] == [script["id"]]

        # incomplete submission is refused and changes nothing
        partial = {"plot_rating": 4}
        resp = await client.put(f"/api/reviews/{review_id}/rubric", json=partial, headers=headers)
        assert resp.status_code == 200
        resp = await client.post(f"/api/reviews/{review_id}/submit", json={"recommendation": "approved"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Please complete all required fields"
        current = (await client.get(f"/api/admin/scripts/{script['id']}", headers=admin_headers)).json()
        assert current["status"] == "assigned"
        assert current["reviewed_at"] is None

        resp = await client.put(f"/api/reviews/{review_id}/rubric", json=RUBRIC, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["plot_rating"] == 4

        resp = await client.put(
            f"/api/reviews/{review_id}/pages/2/note", json={"note_content": "Slow opening."}, headers=headers
        )
        assert resp.status_code == 200
        resp = await client.put(
            f"/api/reviews/{review_id}/pages/1/note", json={"note_content": "Great cold open."}, headers=headers
        )
        assert resp.status_code == 200

        resp = await client.post(
            f"/api/reviews/{review_id}/submit",
            json={"recommendation": "approved", "overall_notes": "Ready for a table read."},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["script"]["status"] == "reviewed"
        assert resp.json()["review"]["feedback"] == (
            "Plot: Escalates well.\n\nCharacters: Memorable lead.\n\nProduction Budget: Contained locations."
        )

        viewer = await client.get(f"/api/admin/reviews/{review_id}", headers=admin_headers)
        assert viewer.status_code == 200
        bundle = viewer.json()
        by_key = {s["key"]: s for s in bundle["sections"]}
        assert by_key["title"]["response"] == RUBRIC["title_response"]
        assert by_key["plot"]["rating"] == 4
        assert by_key["plot"]["notes"] == "Escalates well."
        assert by_key["characters"]["rating"] == 5
        assert by_key["production_budget"]["rating"] == 6
        assert [n["page_number"] for n in bundle["page_notes"]] == [1, 2]
        assert bundle["contractor"]["name"] == judge.name
        assert bundle["overall_notes"] == "Ready for a table read."

        by_script = await client.get(f"/api/admin/reviews/by-script/{script['id']}", headers=admin_headers)
        assert by_script.json()["review_id"] == review_id

        export = await client.get(f"/api/admin/reviews/{review_id}/export", headers=admin_headers)
        assert export.status_code == 200
        assert export.headers["content-type"] == "application/pdf"
        assert "rubric_the_long_night_" in export.headers["content-disposition"]
        assert export.content.startswith(b"%PDF")
        assert int(export.headers["x-page-count"]) >= 1

        done = await client.put(
            f"/api/admin/scripts/{script['id']}/status", json={"status": "completed"}, headers=admin_headers
        )
        assert done.json()["status"] == "completed"

        stats = (await client.get("/api/dashboard/stats", headers=admin_headers)).json()
        assert stats["scripts"]["by_status"] == {"completed": 1}
        assert sum(d["count"] for d in stats["reviews"]["completed_per_day"]) == 1

        activity = (await client.get("/api/admin/activity", headers=admin_headers)).json()
        actions = [a["action"] for a in activity]
        assert "review_submitted" in actions
        assert "script_assigned" in actions

    async def test_version_conflict(self, client, admin_headers, session):
        _, _, headers, workspace = await _assigned_workspace(client, admin_headers, session)
        review_id = workspace["review"]["id"]
        version = workspace["review"]["version"]

        first = await client.put(
            f"/api/reviews/{review_id}/rubric", json={"plot_rating": 2, "version": version}, headers=headers
        )
        assert first.status_code == 200
        assert first.json()["version"] == version + 1

        stale = await client.put(
            f"/api/reviews/{review_id}/rubric", json={"plot_rating": 5, "version": version}, headers=headers
        )
        assert stale.status_code == 409

        # without a version the last write wins
        blind = await client.put(f"/api/reviews/{review_id}/rubric", json={"plot_rating": 5}, headers=headers)
        assert blind.status_code == 200
        assert blind.json()["plot_rating"] == 5

    async def test_long_free_text_recommendation(self, client, admin_headers, session):
        assert isinstance(ScriptReview.__table__.c.recommendation.type, sa.Text)
        _, _, headers, workspace = await _assigned_workspace(client, admin_headers, session)
        review_id = workspace["review"]["id"]
        await client.put(f"/api/reviews/{review_id}/rubric", json=RUBRIC, headers=headers)
        text = "Consider with revisions: tighten the second act and merge the two mentors. " * 3
        resp = await client.post(f"/api/reviews/{review_id}/submit", json={"recommendation": text}, headers=headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["review"]["recommendation"] == text.strip()

    async def test_rating_out_of_range(self, client, admin_headers, session):
        _, _, headers, workspace = await _assigned_workspace(client, admin_headers, session)
        review_id = workspace["review"]["id"]
        resp = await client.put(f"/api/reviews/{review_id}/rubric", json={"plot_rating": 6}, headers=headers)
        assert resp.status_code == 422
        resp = await client.put(
            f"/api/reviews/{review_id}/rubric", json={"production_budget_rating": 6}, headers=headers
        )
        assert resp.status_code == 200

    async def test_per_page_rubric_for_premium_tier(self, client, admin_headers, session):
        _, _, headers, workspace = await _assigned_workspace(client, admin_headers, session, tier_id="tier3")
        assert workspace["granularity"] == "per_page"
        review_id = workspace["review"]["id"]

        empty = await client.get(f"/api/reviews/{review_id}/pages/5/rubric", headers=headers)
        assert empty.status_code == 200
        assert empty.json()["plot_rating"] is None
        assert empty.json()["version"] == 0

        saved = await client.put(
            f"/api/reviews/{review_id}/pages/5/rubric", json={"plot_rating": 3, "plot_notes": "Dense"}, headers=headers
        )
        assert saved.status_code == 200
        loaded = await client.get(f"/api/reviews/{review_id}/pages/5/rubric", headers=headers)
        assert loaded.json()["plot_notes"] == "Dense"

        viewer = (await client.get(f"/api/admin/reviews/{review_id}", headers=admin_headers)).json()
        assert [p["page_number"] for p in viewer["page_rubrics"]] == [5]

    async def test_per_page_rubric_refused_for_whole_script_tier(self, client, admin_headers, session):
        _, _, headers, workspace = await _assigned_workspace(client, admin_headers, session)
        review_id = workspace["review"]["id"]
        resp = await client.get(f"/api/reviews/{review_id}/pages/1/rubric", headers=headers)
        assert resp.status_code == 400

    async def test_unassigned_contractor_cannot_open(self, client, admin_headers, session):
        script = (await submit_script(client)).json()["script"]
        await create_contractor(session)
        headers = await contractor_headers(client)
        resp = await client.post("/api/reviews/open", json={"script_id": script["id"]}, headers=headers)
        assert resp.status_code == 403

    async def test_blank_page_note_removes_it(self, client, admin_headers, session):
        _, _, headers, workspace = await _assigned_workspace(client, admin_headers, session)
        review_id = workspace["review"]["id"]
        await client.put(f"/api/reviews/{review_id}/pages/3/note", json={"note_content": "Typo"}, headers=headers)
        resp = await client.put(f"/api/reviews/{review_id}/pages/3/note", json={"note_content": "  "}, headers=headers)
        assert resp.json()["deleted"] is True
        notes = await client.get(f"/api/reviews/{review_id}/notes", headers=headers)
        assert notes.json() == []


class TestAdminSurfaces:
    async def test_scripts_export_xlsx(self, client, admin_headers):
        await submit_script(client)
        resp = await client.get("/api/admin/scripts/export", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.content[:2] == b"PK"

    async def test_settings_round_trip(self, client, admin_headers):
        resp = await client.put("/api/admin/settings/site_title", json={"value": "H&H"}, headers=admin_headers)
        assert resp.json() == {"key": "site_title", "value": "H&H"}
        all_settings = (await client.get("/api/admin/settings", headers=admin_headers)).json()
        assert all_settings["site_title"] == "H&H"
        assert all_settings["notify_new_submission"] is True

        resp = await client.delete("/api/admin/settings/site_title", headers=admin_headers)
        assert resp.status_code == 200
        resp = await client.delete("/api/admin/settings/site_title", headers=admin_headers)
        assert resp.status_code == 404

    async def test_contractor_token_is_not_admin(self, client, session):
        await create_contractor(session)
        headers = await contractor_headers(client)
        resp = await client.get("/api/admin/scripts", headers=headers)
        assert resp.status_code == 403

    @pytest.mark.parametrize("password", ["wrong", ""])
    async def test_admin_login_rejects_bad_password(self, client, password):
        resp = await client.post("/api/auth/login", json={"email": "admin@example.com", "password": password})
        assert resp.status_code == 401

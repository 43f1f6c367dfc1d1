#!/usr/bin/env python3
"""
Smoke E2E test: walks one script through the review pipeline on a running API.

Uses the free tier so no payment provider is needed.

Env vars:
  BASE_URL        (default http://localhost:8000)
  ADMIN_EMAIL     (optional, must match the server)
  ADMIN_PASSWORD  (optional, must match the server; dev mode when unset)
"""
from __future__ import annotations

import json
import os
import sys
import time
import uuid
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000").rstrip("/")
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")

SMOKE_TAG = f"smoke_{int(time.time())}"
SAMPLE_PDF = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"

RUBRIC = {
    "title_response": "Title fits the story.",
    "plot_rating": 4,
    "plot_notes": "Clear escalation.",
    "characters_rating": 4,
    "characters_notes": "Distinct voices.",
}

# ── Helpers ──────────────────────────────────────────────────

class SmokeError(Exception):
    pass


def _headers(token: str | None, content_type: str | None = "application/json") -> dict[str, str]:
    h = {}
    if content_type:
        h["Content-Type"] = content_type
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


def _send(req: Request, method: str, path: str, expect: int) -> tuple[int, bytes]:
    try:
        with urlopen(req, timeout=30) as resp:
            return resp.status, resp.read()
    except HTTPError as e:
        raw = e.read()
        if e.code == expect:
            return e.code, raw
        raise SmokeError(f"{method} {path} → {e.code}: {raw.decode(errors='replace')[:500]}")
    except URLError as e:
        raise SmokeError(f"{method} {path} → URLError: {e}")


def _req(method: str, path: str, body: dict | None = None, token: str | None = None, expect: int = 200) -> dict:
    data = json.dumps(body).encode() if body is not None else None
    req = Request(f"{BASE_URL}{path}", data=data, headers=_headers(token), method=method)
    _, raw = _send(req, method, path, expect)
    return json.loads(raw) if raw else {}


def _multipart(fields: dict[str, str], filename: str, content: bytes) -> tuple[bytes, str]:
    boundary = uuid.uuid4().hex
    parts = []
    for name, value in fields.items():
        parts.append(
            f'--{boundary}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'.encode()
        )
    parts.append(
        (
            f'--{boundary}\r\nContent-Disposition: form-data; name="file"; filename="{filename}"\r\n'
            "Content-Type: application/pdf\r\n\r\n"
        ).encode()
        + content
        + b"\r\n"
    )
    parts.append(f"--{boundary}--\r\n".encode())
    return b"".join(parts), f"multipart/form-data; boundary={boundary}"


def step(name: str):
    print(f"\n{'='*60}")
    print(f"  STEP: {name}")
    print(f"{'='*60}")


def ok(msg: str):
    print(f"  ✅ {msg}")


def fail(msg: str):
    print(f"  ❌ {msg}")
    raise SmokeError(msg)


# ── Steps ────────────────────────────────────────────────────

def step1_health():
    step("1. Health check")
    req = Request(f"{BASE_URL}/ping", method="GET")
    _, raw = _send(req, "GET", "/ping", 200)
    if json.loads(raw).get("status") != "ok":
        fail(f"Unexpected /ping body: {raw[:100]!r}")
    ok("API is up")


def step2_admin_login() -> str:
    step("2. Admin login")
    data = _req("POST", "/api/auth/login", {"email": ADMIN_EMAIL or None, "password": ADMIN_PASSWORD})
    ok(f"Admin token issued (expires {data['expires_at']})")
    return data["token"]


def step3_submit_script() -> int:
    step("3. Submit script (free tier)")
    body, content_type = _multipart(
        {
            "title": f"SMOKE Script {SMOKE_TAG}",
            "author_name": "Smoke Author",
            "author_email": f"{SMOKE_TAG}@example.com",
            "tier_id": "free",
        },
        "smoke.pdf",
        SAMPLE_PDF,
    )
    req = Request(f"{BASE_URL}/api/scripts", data=body, headers=_headers(None, content_type), method="POST")
    _, raw = _send(req, "POST", "/api/scripts", 201)
    data = json.loads(raw)
    script = data["script"]
    if script["status"] != "pending" or data.get("checkout_url"):
        fail(f"Unexpected submission state: {data}")
    ok(f"Script #{script['id']} pending, payment {script['payment_status']}")
    return script["id"]


def step4_contractor(admin_token: str) -> tuple[int, str]:
    step("4. Contractor signup + approval + login")
    email = f"judge_{SMOKE_TAG}@example.com"
    password = "smoke-pass"
    contractor = _req(
        "POST", "/api/contractors/signup", {"name": "Smoke Judge", "email": email, "password": password}, expect=201
    )
    _req("POST", f"/api/admin/contractors/{contractor['id']}/approve", token=admin_token)
    login = _req("POST", "/api/auth/contractor/login", {"email": email, "password": password})
    ok(f"Contractor #{contractor['id']} approved and logged in")
    return contractor["id"], login["token"]


def step5_assign(admin_token: str, script_id: int, judge_id: int):
    step("5. Assign script")
    script = _req("POST", f"/api/admin/scripts/{script_id}/assign", {"judge_id": judge_id}, token=admin_token)
    if script["status"] != "assigned":
        fail(f"Script status is {script['status']}, expected assigned")
    ok(f"Script #{script_id} assigned to #{judge_id}")


def step6_review(judge_token: str, script_id: int) -> int:
    step("6. Workspace: rubric, page note, submit")
    ws = _req("POST", "/api/reviews/open", {"script_id": script_id}, token=judge_token)
    review_id = ws["review"]["id"]
    ok(f"Review #{review_id} open ({ws['granularity']}, viewer {ws['viewer_mode']})")

    saved = _req("PUT", f"/api/reviews/{review_id}/rubric", {**RUBRIC, "version": ws["review"]["version"]}, token=judge_token)
    ok(f"Rubric saved (version {saved['version']})")

    _req("PUT", f"/api/reviews/{review_id}/pages/1/note", {"note_content": "Smoke note"}, token=judge_token)
    ok("Page 1 note saved")

    result = _req(
        "POST",
        f"/api/reviews/{review_id}/submit",
        {"recommendation": "approved", "overall_notes": "Smoke run"},
        token=judge_token,
    )
    if result["script"]["status"] != "reviewed":
        fail(f"Script status is {result['script']['status']}, expected reviewed")
    ok("Review submitted, script reviewed")
    return review_id


def step7_export(admin_token: str, review_id: int):
    step("7. Admin viewer + PDF export")
    bundle = _req("GET", f"/api/admin/reviews/{review_id}", token=admin_token)
    plot = next(s for s in bundle["sections"] if s["key"] == "plot")
    if plot["rating"] != RUBRIC["plot_rating"]:
        fail(f"Viewer shows plot rating {plot['rating']}")
    ok(f"Viewer shows {len(bundle['sections'])} sections, {len(bundle['page_notes'])} page note(s)")

    path = f"/api/admin/reviews/{review_id}/export"
    req = Request(f"{BASE_URL}{path}", headers=_headers(admin_token, None), method="GET")
    with urlopen(req, timeout=60) as resp:
        content = resp.read()
        pages = resp.headers.get("X-Page-Count")
        disposition = resp.headers.get("Content-Disposition", "")
    if not content.startswith(b"%PDF"):
        fail("Export is not a PDF")
    ok(f"PDF {len(content)} bytes, {pages} page(s), {disposition}")


def step8_report(admin_token: str, script_id: int):
    step("8. Report")
    stats = _req("GET", "/api/dashboard/stats", token=admin_token)
    activity = _req("GET", f"/api/admin/activity?entity_type=script&entity_id={script_id}", token=admin_token)
    print(f"  Scripts by status: {stats['scripts']['by_status']}")
    print(f"  Activity for #{script_id}: {[a['action'] for a in activity]}")
    ok("SMOKE PASSED")


def main():
    print(f"\n🔬 Smoke E2E Test: {BASE_URL}")
    print(f"   ADMIN_PASSWORD={'set' if ADMIN_PASSWORD else 'none (dev mode)'}\n")

    try:
        step1_health()
        admin_token = step2_admin_login()
        script_id = step3_submit_script()
        judge_id, judge_token = step4_contractor(admin_token)
        step5_assign(admin_token, script_id, judge_id)
        review_id = step6_review(judge_token, script_id)
        step7_export(admin_token, review_id)
        step8_report(admin_token, script_id)

    except SmokeError as e:
        print(f"\n{'='*60}")
        print(f"  ❌ FAIL: {e}")
        print(f"{'='*60}\n")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\n  ⏹ Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()

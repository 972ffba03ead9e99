from __future__ import annotations

import json
import os
import time
import uuid

import requests
from rich import print

from rdsync.auth.tokens import issue_access_token
from rdsync.config import settings
from rdsync.rd.signature import SIGNATURE_HEADER, sign_body
from scripts.seed import seed

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

def post(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    headers = {"content-type": "application/json"}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.post(f"{BASE}{path}", headers=headers, json=json, timeout=10)

def patch(path: str, *, jwt: str, json: dict) -> requests.Response:
    headers = {"content-type": "application/json", "authorization": f"bearer {jwt}"}
    return requests.patch(f"{BASE}{path}", headers=headers, json=json, timeout=10)

def get(path: str, *, jwt: str | None = None) -> requests.Response:
    headers = {}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.get(f"{BASE}{path}", headers=headers, timeout=10)

def send_rd_webhook(event: dict) -> requests.Response:
    if not settings.rd_webhook_secret:
        raise RuntimeError("RD_WEBHOOK_SECRET must be set for the demo")
    raw = json.dumps(event).encode("utf-8")
    headers = {
        "content-type": "application/json",
        SIGNATURE_HEADER: f"sha256={sign_body(settings.rd_webhook_secret, raw)}",
    }
    return requests.post(f"{BASE}/webhooks/rd/sinistros", headers=headers, data=raw, timeout=10)

def stage_changed_event(deal_id: str, order: int, name: str) -> dict:
    return {
        "event_uuid": str(uuid.uuid4()),
        "event_type": "crm_deal_stage_changed",
        "event_timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "entity": "deal",
        "entity_id": deal_id,
        "data": {
            "deal": {
                "_id": deal_id,
                "name": "Sinistro - Maria Demo",
                "deal_stage": {"_id": f"stage_{order}", "name": name, "order": order},
                "user": {"_id": "rd_user_demo", "name": "Consultor RD"},
            }
        },
    }

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: Exception | None = None

    while time.time() < deadline:
        try:
            r = get("/ready")
            if r.status_code == 200:
                return
        except requests.RequestException as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def main() -> None:
    print("[bold]demo: rd webhook -> replay -> local status change -> timeline[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    seeded = seed()
    jwt = issue_access_token(seeded.vizio_user_id)
    print("seeded sinistro:", seeded.sinistro_id)

    event = stage_changed_event(seeded.rd_deal_id, 3, "Enviado à Operadora")
    r = send_rd_webhook(event)
    r.raise_for_status()
    print("webhook:", r.json())

    # same event_uuid again: ledger answers duplicate, nothing is written
    r = send_rd_webhook(event)
    r.raise_for_status()
    print("replay:", r.json())

    r = patch(f"/sinistros/{seeded.sinistro_id}/status", jwt=jwt, json={"status": "aprovado"})
    if r.status_code == 409:
        print("[yellow]status change rejected:[/yellow]", r.json())
    else:
        r.raise_for_status()
        print("local status change:", r.json())

    r = get(f"/sinistros/{seeded.sinistro_id}/timeline", jwt=jwt)
    r.raise_for_status()
    for row in r.json():
        print(f"  {row['created_at']}  {row['source']:<10} {row['status_anterior']} -> {row['status_novo']}  {row['descricao']}")
    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()

"""
Post a signed sample Nhonga webhook to a running relay, then print stats.

  BASE_URL=http://localhost:3001 NHONGA_WEBHOOK_SECRET=... python scripts/smoke_webhook.py 0788123456 1000
"""
import os
import sys
import time

import requests

from _webhook_signing import canonical_json_bytes, nhonga_signature_header


def die(message, code=1):
    print(message)
    sys.exit(code)


def step(message):
    print("\n==> " + message)


def main():
    base_url = (os.getenv("BASE_URL") or "http://localhost:3001").rstrip("/")
    secret = os.getenv("NHONGA_WEBHOOK_SECRET") or os.getenv("WEBHOOK_ENDPOINT_SECRET")
    if not secret:
        die("NHONGA_WEBHOOK_SECRET is not set")

    phone = sys.argv[1] if len(sys.argv) > 1 else "0788123456"
    amount = sys.argv[2] if len(sys.argv) > 2 else "1000"

    payload = {
        "transaction_id": "SMOKE-%d" % int(time.time() * 1000),
        "status": "completed",
        "amount": amount,
        "currency": "MZN",
        "phone_number": phone,
        "sms_content": "Payment confirmed for %s" % phone,
    }
    body = canonical_json_bytes(payload)
    headers = nhonga_signature_header(secret, body)
    headers["Content-Type"] = "application/json"

    step("POST /webhook/nhonga transaction_id=%s" % payload["transaction_id"])
    try:
        resp = requests.post(base_url + "/webhook/nhonga", data=body, headers=headers, timeout=60)
    except requests.RequestException as exc:
        die("Request failed: %s" % exc)
    print("HTTP %s" % resp.status_code)
    print(resp.text)
    if resp.status_code != 200:
        sys.exit(1)

    step("Replay the same delivery (expect skipped / already processed)")
    resp = requests.post(base_url + "/webhook/nhonga", data=body, headers=headers, timeout=60)
    print(resp.text)

    step("GET /stats")
    resp = requests.get(base_url + "/stats", timeout=30)
    print(resp.text)


if __name__ == "__main__":
    main()

import time
import subprocess
import uuid
import httpx
import sys
import os
import signal
from datetime import datetime, timedelta, timezone

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
APP_TARGET = "location_sync.app.main:app"


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def start_server(echo=False):
    env = {**os.environ}
    if echo:
        env["DB_ECHO"] = "True"  # Enable echo to see SQL
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", APP_TARGET, "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def build_batch(subject_id, size=5):
    """Samples one minute apart so none of them collide with each other."""
    start = datetime.now(timezone.utc) - timedelta(hours=1)
    return [
        {
            "client_id": f"{subject_id}-{i}",
            "subject_id": subject_id,
            "latitude": 55.6761234 + i * 0.0001,
            "longitude": 12.5683371,
            "accuracy_meters": 8.5,
            "timestamp": (start + timedelta(minutes=i)).isoformat(),
            "battery_percent": 90 - i,
        }
        for i in range(size)
    ]


def run_verification():
    subject_id = f"smoke-{uuid.uuid4().hex[:8]}"
    batch = build_batch(subject_id)
    upload_url = f"{BASE_URL}{API_PREFIX}/gps-sync/batch-upload"

    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Upload batch
        print(f"\n--- [Step 2] Uploading {len(batch)} samples for {subject_id} ---")
        resp = httpx.post(upload_url, json={"data": batch})

        if resp.status_code == 200 and resp.json()["created"] == len(batch):
            print("✅ Batch stored")
            print(resp.json())
        else:
            print(f"❌ Upload Failed: {resp.status_code} {resp.text}")
            raise Exception("Upload failed")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. Re-upload the same batch
        print("\n--- [Step 5] Re-uploading Same Batch (Post-Restart) ---")
        resp = httpx.post(upload_url, json={"data": batch})
        body = resp.json()

        if resp.status_code == 200 and body["duplicates"] == len(batch) and body["created"] == 0:
            print("✅ Every sample reported as duplicate (samples persisted!)")
            print(body)
        else:
            print(f"❌ Re-upload not idempotent (Persistence Issue?): {resp.status_code} {resp.text}")
            raise Exception("Re-upload created new samples after restart")

        # 5. Verify sync status
        print("\n--- [Step 6] Verifying Sync Status ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/gps-sync/sync-status/{subject_id}")
        if resp.status_code == 200 and resp.json()["total_points"] == len(batch):
            print("✅ Sync status matches")
            print(resp.json())
        else:
            print(f"❌ Sync Status Check Failed: {resp.status_code} {resp.text}")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()

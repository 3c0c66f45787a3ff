#!/usr/bin/env python3
"""
Smoke checks against a running Form Lead Sync instance.

Start the app first (python app.py), then run: python smoke_check.py [base_url]
"""

import requests
import sys

def check_health(base_url):
    """Check the health endpoint."""
    try:
        response = requests.get(f"{base_url}/health", timeout=10)
        if response.status_code == 200:
            print(f"✅ Health check passed: {response.json()}")
            return True
        print(f"❌ Health check failed: {response.status_code}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"❌ Health check error: {e}")
        return False

def check_get_leads(base_url):
    """Run a bulk sync through the GET endpoint."""
    try:
        response = requests.get(f"{base_url}/exec", params={"action": "getLeads"}, timeout=60)
        data = response.json()
        if response.status_code == 200 and data.get("success"):
            print(f"✅ getLeads returned {len(data['leads'])} leads, {len(data.get('failed', []))} failed rows")
            return True
        print(f"❌ getLeads failed: {response.status_code} {data}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"❌ getLeads error: {e}")
        return False

def check_unknown_action(base_url):
    """An unknown action must come back as a structured error."""
    try:
        response = requests.get(f"{base_url}/exec", params={"action": "smoke"}, timeout=10)
        if response.json() == {"error": "Unknown action"}:
            print("✅ Unknown action rejected")
            return True
        print(f"❌ Unexpected response for unknown action: {response.text}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"❌ Unknown action error: {e}")
        return False

def check_post(base_url):
    """The POST endpoint accepts JSON and rejects garbage without failing."""
    try:
        ok = requests.post(f"{base_url}/exec", json={"ping": "smoke"}, timeout=10).json()
        bad = requests.post(
            f"{base_url}/exec",
            data="{not json",
            headers={"Content-Type": "application/json"},
            timeout=10
        ).json()
        if ok == {"success": True} and "error" in bad:
            print("✅ POST endpoint accepts JSON and reports parse errors")
            return True
        print(f"❌ POST endpoint responses: {ok} / {bad}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"❌ POST endpoint error: {e}")
        return False

def main():
    """Run all checks."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
    print(f"🚀 Checking Form Lead Sync at {base_url}")
    print("=" * 50)

    checks = [
        ("Health Check", check_health),
        ("Bulk Sync", check_get_leads),
        ("Unknown Action", check_unknown_action),
        ("Inbound POST", check_post),
    ]

    passed = 0
    for name, check in checks:
        print(f"\n🧪 Running {name}...")
        if check(base_url):
            passed += 1

    print("\n" + "=" * 50)
    print(f"📊 Results: {passed}/{len(checks)} checks passed")
    return 0 if passed == len(checks) else 1

if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Smoke test for a running HealthNet server.

Logs in as each seeded demo account (run ``manage.py seed_demo_data``
first), calls the read endpoints that role is expected to reach and
reports anything that does not answer with the expected status.

    BASE_URL=http://127.0.0.1:8000 python unified_api_test.py
"""
import os
import sys
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import requests

BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:8000").rstrip("/")
PASSWORD = os.getenv("DEMO_PASSWORD", "demo123")

COMMON = [
    ("GET", "/healthz", None, 200, "health check"),
    ("GET", "/api/auth/me", None, 200, "current user"),
    ("GET", "/api/dashboard/stats", None, 200, "dashboard"),
    ("GET", "/api/alerts", None, 200, "alerts"),
]

# email -> extra cases for that role
ROLE_CASES: Dict[str, List[tuple]] = {
    "superadmin@health.go.ke": [
        ("GET", "/api/counties", None, 200, "counties"),
        ("GET", "/api/hospitals", None, 200, "hospitals"),
        ("GET", "/api/audit-logs", None, 200, "audit trail"),
        ("GET", "/api/sha-claims", None, 200, "claims"),
        ("GET", "/api/analytics/triage", None, 200, "triage analytics"),
    ],
    "countyadmin@health.go.ke": [
        ("GET", "/api/hospitals", None, 200, "county hospitals"),
        ("GET", "/api/emergencies", None, 200, "county emergencies"),
        ("GET", "/api/facilities/health-centers", None, 200, "health centres"),
    ],
    "doctor@health.go.ke": [
        ("GET", "/api/patients", None, 200, "patients"),
        ("GET", "/api/transfers", None, 200, "transfers"),
        ("GET", "/api/transfers/available-beds?hospitalId=hosp-001", None, 200, "destination beds"),
        ("GET", "/api/referrals", None, 200, "referrals"),
        ("GET", "/api/audit-logs", None, 403, "audit trail is closed"),
    ],
    "triage@health.go.ke": [
        ("GET", "/api/triage/queue", None, 200, "triage queue"),
        ("GET", "/api/triage/stats", None, 200, "triage stats"),
    ],
    "dispatcher@health.go.ke": [
        ("GET", "/api/dispatch", None, 200, "dispatch log"),
        ("GET", "/api/dispatch/ambulances", None, 200, "fleet"),
        ("GET", "/api/dispatch/nearest?latitude=-1.2921&longitude=36.8219", None, 200, "nearest ambulance"),
    ],
    "finance@health.go.ke": [
        ("GET", "/api/sha-claims", None, 200, "claims"),
        ("GET", "/api/patients", None, 403, "patients are closed"),
    ],
}


@dataclass
class CheckResult:
    success: bool
    endpoint: str
    method: str
    status_code: int
    response_time: float
    error_message: str = ""
    description: str = ""
    account: str = ""


class SmokeTester:
    def __init__(self):
        self.session = requests.Session()
        self.headers: Dict[str, str] = {}
        self.account: Optional[str] = None
        self.results: List[CheckResult] = []
        self.errors: List[CheckResult] = []

    def _record(self, result: CheckResult) -> CheckResult:
        self.results.append(result)
        if not result.success:
            self.errors.append(result)
        return result

    def login(self, email: str) -> bool:
        started = time.time()
        try:
            resp = self.session.post(f"{BASE_URL}/api/auth/login", json={"email": email, "password": PASSWORD},
                                     timeout=10)
        except requests.RequestException as e:
            self._record(CheckResult(False, "/api/auth/login", "POST", 0, 0, str(e), "login", email))
            print(f"FAIL login {email}: {e}")
            return False
        elapsed = time.time() - started
        if resp.status_code != 200:
            self._record(CheckResult(False, "/api/auth/login", "POST", resp.status_code, elapsed,
                                     resp.text[:200], "login", email))
            print(f"FAIL login {email}: {resp.status_code}")
            return False
        self.headers = {"Authorization": f"Bearer {resp.json()['token']}"}
        self.account = email
        self._record(CheckResult(True, "/api/auth/login", "POST", 200, elapsed, description="login", account=email))
        print(f"ok   login {email} ({elapsed:.2f}s)")
        return True

    def check(self, method: str, endpoint: str, data=None, expected: int = 200, description: str = "") -> CheckResult:
        started = time.time()
        try:
            resp = self.session.request(method, f"{BASE_URL}{endpoint}", json=data, headers=self.headers, timeout=10)
        except requests.RequestException as e:
            print(f"FAIL {method} {endpoint}: {e}")
            return self._record(CheckResult(False, endpoint, method, 0, time.time() - started, str(e),
                                            description, self.account or ""))
        elapsed = time.time() - started
        ok = resp.status_code == expected
        print(f"{'ok  ' if ok else 'FAIL'} {method} {endpoint} -> {resp.status_code} ({elapsed:.2f}s)")
        return self._record(CheckResult(ok, endpoint, method, resp.status_code, elapsed,
                                        "" if ok else resp.text[:200], description, self.account or ""))

    def run_account(self, email: str) -> None:
        if not self.login(email):
            return
        for method, endpoint, data, expected, description in COMMON + ROLE_CASES[email]:
            self.check(method, endpoint, data, expected, description)
        self.check("POST", "/api/auth/logout", {}, 200, "logout")
        self.session = requests.Session()
        self.headers = {}
        self.account = None

    def run(self) -> bool:
        for email in ROLE_CASES:
            self.run_account(email)
        self.report()
        return not self.errors

    def report(self) -> None:
        total = len(self.results)
        passed = total - len(self.errors)
        rate = (passed / total) * 100 if total else 0
        print(f"\n{passed}/{total} checks passed ({rate:.1f}%)")
        for i, e in enumerate(self.errors, 1):
            print(f"{i}. [{e.account}] {e.method} {e.endpoint} -> {e.status_code}: {e.error_message}")


def main():
    tester = SmokeTester()
    sys.exit(0 if tester.run() else 1)


if __name__ == "__main__":
    main()

"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

The concurrency scenario needs an existing admin account to create the
contested server:
  LOCUST_ADMIN_EMAIL=admin@example.com LOCUST_ADMIN_PASSWORD=... locust ...
"""

import os
import random
import string
from datetime import date, timedelta

from locust import HttpUser, task, between, tag

# Shared state
SERVER_IDS = []
CONCURRENCY_SERVER_ID = None

PASSWORD = "LoadTest123"


def random_email():
    return f"load_{random.randint(10000, 99999)}_{''.join(random.choices(string.ascii_lowercase, k=4))}@example.com"


def register_and_login(client) -> dict:
    email = random_email()
    client.post("/api/users/register", json={
        "name": "Load Tester",
        "email": email,
        "password": PASSWORD,
    })
    resp = client.post("/api/users/login", json={"email": email, "password": PASSWORD})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['accessToken']}"}
    return {}


def random_range(max_offset: int = 60, max_length: int = 10) -> tuple[str, str]:
    start = date.today() + timedelta(days=random.randint(1, max_offset))
    end = start + timedelta(days=random.randint(1, max_length))
    return start.isoformat(), end.isoformat()


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users fight over one server

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no two non-terminal bookings overlap:
      SELECT a.id, b.id FROM bookings a JOIN bookings b
        ON a.server_id = b.server_id AND a.id < b.id
       WHERE a.status IN ('active', 'pending_renewal')
         AND b.status IN ('active', 'pending_renewal')
         AND a.start_date < b.end_date AND a.end_date > b.start_date;
    Should return zero rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register_and_login(self.client)

        if CONCURRENCY_SERVER_ID:
            return

        admin_email = os.environ.get("LOCUST_ADMIN_EMAIL")
        admin_password = os.environ.get("LOCUST_ADMIN_PASSWORD")
        if not admin_email or not admin_password:
            return

        resp = self.client.post("/api/users/login", json={"email": admin_email, "password": admin_password})
        if resp.status_code != 200:
            return
        admin_headers = {"Authorization": f"Bearer {resp.json()['accessToken']}"}

        resp = self.client.post("/api/servers", json={
            "name": "Concurrency Test Server",
            "specifications": {"cpu": "64 cores", "memory": "512 GB", "storage": "8 TB"},
            "location": "Load Lab",
        }, headers=admin_headers)
        if resp.status_code == 201:
            globals()["CONCURRENCY_SERVER_ID"] = resp.json()["id"]
            print(f"\nCreated contested server {CONCURRENCY_SERVER_ID}\n")

    @tag("concurrency")
    @task
    def book_contested_server(self):
        """Everyone asks for overlapping windows on the same server."""
        if not CONCURRENCY_SERVER_ID or not self.headers:
            return

        start, end = random_range(max_offset=14, max_length=5)
        with self.client.post("/api/bookings",
            json={
                "serverId": CONCURRENCY_SERVER_ID,
                "startDate": start,
                "endDate": end,
                "purpose": "load test",
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: Expected, window already taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    @tag("throughput", "read")
    @task(10)
    def list_servers_cached(self):
        resp = self.client.get("/api/servers", headers=self.headers, name="/api/servers [cached]")
        if resp.status_code == 200:
            for server in resp.json():
                if server["id"] not in SERVER_IDS:
                    SERVER_IDS.append(server["id"])

    @tag("throughput", "read")
    @task(3)
    def get_server_detail(self):
        if SERVER_IDS:
            self.client.get(f"/api/servers/{random.choice(SERVER_IDS)}",
                headers=self.headers, name="/api/servers/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_server(self):
        start, end = random_range()
        with self.client.post("/api/bookings",
            json={"serverId": "does-not-exist", "startDate": start, "endDate": end, "purpose": "x"},
            headers=self.headers, catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def past_start_date(self):
        start = (date.today() - timedelta(days=3)).isoformat()
        end = (date.today() + timedelta(days=3)).isoformat()
        server_id = random.choice(SERVER_IDS) if SERVER_IDS else "does-not-exist"
        with self.client.post("/api/bookings",
            json={"serverId": server_id, "startDate": start, "endDate": end, "purpose": "x"},
            headers=self.headers, catch_response=True,
        ) as resp:
            self._expect(resp, [400, 404])

    @tag("edge")
    @task
    def inverted_range(self):
        start, end = random_range()
        server_id = random.choice(SERVER_IDS) if SERVER_IDS else "does-not-exist"
        with self.client.post("/api/bookings",
            json={"serverId": server_id, "startDate": end, "endDate": start, "purpose": "x"},
            headers=self.headers, catch_response=True,
        ) as resp:
            self._expect(resp, [400, 404])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/bookings",
            data="not json at all",
            headers=self.headers, catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        start, end = random_range()
        with self.client.post("/api/bookings",
            json={"serverId": "any", "startDate": start, "endDate": end, "purpose": "x"},
            catch_response=True,
        ) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly browsing, some bookings, occasional cancellations.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = register_and_login(self.client)
        self.booking_ids = []

    @task(50)
    def browse_servers(self):
        resp = self.client.get("/api/servers", headers=self.headers)
        if resp.status_code == 200:
            for server in resp.json():
                if server["id"] not in SERVER_IDS:
                    SERVER_IDS.append(server["id"])

    @task(10)
    def book_server(self):
        if SERVER_IDS and self.headers:
            start, end = random_range()
            resp = self.client.post("/api/bookings",
                json={
                    "serverId": random.choice(SERVER_IDS),
                    "startDate": start,
                    "endDate": end,
                    "purpose": "benchmark run",
                },
                headers=self.headers)
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["id"])

    @task(3)
    def cancel_booking(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop()
            self.client.put(f"/api/bookings/{booking_id}/cancel",
                headers=self.headers, name="/api/bookings/{id}/cancel")

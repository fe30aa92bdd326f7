"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many users, few seats
  locust -f locustfile.py --tags browse       # Seat map polling (cache)
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Tokens are minted locally with the API's SECRET_KEY (export the same value
the server uses), standing in for the platform's auth service.
"""

import random
import uuid
from locust import HttpUser, task, between, tag, events

from seatkeeper.core.security import create_access_token

API = "/api/v1/seats"
HOT_SEATS = ["W01", "W02", "W03", "W04", "W05"]


def user_headers(role: str = "user") -> dict:
    token = create_access_token(data={"sub": f"load-{uuid.uuid4().hex[:12]}", "role": role})
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: reset the pool so every run starts with free seats."""
    print("\n" + "=" * 60)
    print("SETUP: Reinitializing seat pool...")
    print("=" * 60)
    if environment.host:
        import httpx
        resp = httpx.post(f"{environment.host}{API}/initialize", headers=user_headers("admin"))
        print(f"initialize -> {resp.status_code} {resp.text}")


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - hundreds of users → 5 seats

    Run: locust -f locustfile.py --tags contention -u 200 -r 50 --run-time 30s

    After test, verify:
      SELECT holder_id, COUNT(*) FROM seats WHERE NOT is_available GROUP BY holder_id;
    Every count should be 1 and at most 5 rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = user_headers()

    @tag("contention")
    @task(5)
    def grab_hot_seat(self):
        """Everyone fights for the same few seats."""
        with self.client.post(f"{API}/{random.choice(HOT_SEATS)}/reserve",
            json={"hours": random.randint(1, 8)},
            headers=self.headers,
            name=f"{API}/[hot]/reserve",
            catch_response=True
        ) as resp:
            if resp.status_code in (200, 409):
                resp.success()  # 409: occupied or already holding one
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(1)
    def give_back(self):
        """Holders occasionally release, putting the seat back in play."""
        resp = self.client.get(f"{API}/my-reservation", headers=self.headers)
        seat = resp.json().get("seat") if resp.status_code == 200 else None
        if seat:
            self.client.post(f"{API}/{seat['seat_number']}/release",
                headers=self.headers,
                name=f"{API}/[mine]/release")


class BrowseUser(HttpUser):
    """
    TEST 2: Seat map polling - cache effectiveness

    Run twice, with and without Redis, and compare P95 latency:
      locust -f locustfile.py --tags browse -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("browse")
    @task(10)
    def seat_map(self):
        room = random.choice(["all", "white", "staff"])
        self.client.get(f"{API}/?room={room}", name=f"{API}/?room=[room]")

    @tag("browse")
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
        self.headers = user_headers()

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_seat(self):
        with self.client.post(f"{API}/Z99/reserve", json={"hours": 1},
            headers=self.headers, catch_response=True) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def hours_out_of_range(self):
        with self.client.post(f"{API}/W10/reserve", json={"hours": random.choice([0, 9, -3, 48])},
            headers=self.headers, catch_response=True) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(f"{API}/W10/reserve", data="not json at all",
            headers=self.headers, catch_response=True) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def release_someone_elses(self):
        with self.client.post(f"{API}/{random.choice(HOT_SEATS)}/release",
            headers=self.headers, catch_response=True) as resp:
            self._expect(resp, (200, 403))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(f"{API}/W10/reserve", json={"hours": 1},
            catch_response=True) as resp:
            self._expect(resp, (401,))

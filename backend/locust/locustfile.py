"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test search cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

The catalog has no write API; seed at least one active route from
LOAD_SOURCE to LOAD_DESTINATION (default Mumbai -> Pune) before running.
"""

import os
import random
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

SOURCE = os.getenv("LOAD_SOURCE", "Mumbai")
DESTINATION = os.getenv("LOAD_DESTINATION", "Pune")

# One slot everybody fights over: first matching route, 30 days out
RACE_DATE = (datetime.now(timezone.utc) + timedelta(days=30)).replace(
    hour=9, minute=0, second=0, microsecond=0
)

# Shared state
TAXI_IDS = []
RACE_SLOT = {}


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def register_and_login(client) -> dict:
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "name": "Load Rider",
        "email": email,
        "phone": "9876543210",
        "password": "loadtest123",
    })
    resp = client.post("/api/v1/auth/login", json={
        "email": email,
        "password": "loadtest123",
    })
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


def booking_body(taxi_id, route_id, ride_date, passengers=1) -> dict:
    return {
        "taxi_id": taxi_id,
        "route_id": route_id,
        "ride_date": ride_date.isoformat(),
        "passenger_count": passengers,
        "passenger_name": "Load Rider",
        "passenger_phone": "9876543210",
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"RACE SLOT: first {SOURCE} -> {DESTINATION} route on {RACE_DATE.date()}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 1 taxi slot

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE route_id = X AND ride_day = 'YYYY-MM-DD' AND booking_status = 'confirmed';
    Should be exactly 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register_and_login(self.client)

        if not RACE_SLOT:
            resp = self.client.get("/api/v1/taxis/search", params={
                "source": SOURCE,
                "destination": DESTINATION,
                "date": RACE_DATE.date().isoformat(),
            })
            if resp.status_code == 200 and resp.json()["routes"]:
                route = resp.json()["routes"][0]
                RACE_SLOT.update(taxi_id=route["taxi_id"], route_id=route["id"])
                print(f"\n✓ Racing for taxi {route['taxi_id']} route {route['id']}\n")

    @tag("concurrency")
    @task
    def book_same_slot(self):
        """All users fight for the same taxi, route and day."""
        if not RACE_SLOT or not self.headers:
            return

        with self.client.post("/api/v1/bookings/",
            json=booking_body(RACE_SLOT["taxi_id"], RACE_SLOT["route_id"], RACE_DATE),
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: slot taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Search cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def search_cached(self):
        """Hammer the cached search endpoint over a handful of dates."""
        ride_day = (datetime.now(timezone.utc) + timedelta(days=random.randint(1, 5))).date()
        self.client.get("/api/v1/taxis/search",
            params={"source": SOURCE, "destination": DESTINATION, "date": ride_day.isoformat()},
            name="/api/v1/taxis/search [cached]")

    @tag("throughput", "read")
    @task(3)
    def featured_and_details(self):
        resp = self.client.get("/api/v1/taxis/")
        if resp.status_code == 200:
            for taxi in resp.json()["taxis"]:
                if taxi["id"] not in TAXI_IDS:
                    TAXI_IDS.append(taxi["id"])
        if TAXI_IDS:
            self.client.get(f"/api/v1/taxis/{random.choice(TAXI_IDS)}",
                name="/api/v1/taxis/{id}")

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

    def expect(self, statuses, **request):
        with self.client.post("/api/v1/bookings/", catch_response=True, **request) as resp:
            if resp.status_code in statuses:
                resp.success()
            else:
                resp.failure(f"Expected {statuses}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_taxi(self):
        self.expect([404], json=booking_body(999999, 999999, RACE_DATE), headers=self.headers)

    @tag("edge")
    @task
    def zero_passengers(self):
        self.expect([400, 422], json=booking_body(1, 1, RACE_DATE, passengers=0), headers=self.headers)

    @tag("edge")
    @task
    def too_many_passengers(self):
        self.expect([400, 422], json=booking_body(1, 1, RACE_DATE, passengers=50), headers=self.headers)

    @tag("edge")
    @task
    def malformed_json(self):
        self.expect([400, 422], data="not json at all", headers=self.headers)

    @tag("edge")
    @task
    def search_without_date(self):
        with self.client.get("/api/v1/taxis/search",
            params={"source": SOURCE},
            catch_response=True
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        self.expect([401], json=booking_body(1, 1, RACE_DATE))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly searching, some bookings, a few cancellations and payments.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = register_and_login(self.client)
        self.my_bookings = []

    @task(50)
    def search(self):
        ride_day = (datetime.now(timezone.utc) + timedelta(days=random.randint(1, 60))).date()
        resp = self.client.get("/api/v1/taxis/search",
            params={"source": SOURCE, "destination": DESTINATION, "date": ride_day.isoformat()},
            name="/api/v1/taxis/search")
        if resp.status_code == 200 and resp.json()["routes"] and self.headers and random.random() < 0.2:
            route = random.choice(resp.json()["routes"])
            ride = datetime.combine(ride_day, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=9)
            booked = self.client.post("/api/v1/bookings/",
                json=booking_body(route["taxi_id"], route["id"], ride, random.randint(1, 3)),
                headers=self.headers)
            if booked.status_code == 201:
                self.my_bookings.append(booked.json()["booking_code"])

    @task(5)
    def pay(self):
        if self.my_bookings:
            code = random.choice(self.my_bookings)
            self.client.post(f"/api/v1/bookings/{code}/payment",
                json={"payment_method": "upi"},
                headers=self.headers,
                name="/api/v1/bookings/{code}/payment")

    @task(2)
    def cancel(self):
        if self.my_bookings:
            code = self.my_bookings.pop()
            self.client.put(f"/api/v1/bookings/{code}/cancel",
                json={"reason": "Load test"},
                headers=self.headers,
                name="/api/v1/bookings/{code}/cancel")

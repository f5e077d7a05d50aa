"""Locust profile for mixed create/redirect/stats traffic.

Each simulated user keeps a pool of the shortcodes it created so redirect and
stats requests target live aliases. Run against a local server with::

    locust -f stress/locustfile.py --host http://localhost:8000
"""

import random

from locust import HttpUser, between, task

MAX_CODES_PER_USER = 200


class ShortenerUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self) -> None:
        self.codes: list[str] = []

    @task(2)
    def create_short_url(self) -> None:
        """Create an auto-aliased link and remember its shortcode."""

        payload = {
            "url": f"https://example.com/page/{random.randint(1, 1000000)}",
            "validity": random.choice([5, 30, 120]),
        }
        response = self.client.post("/shorturls", json=payload, name="POST /shorturls")

        if response.status_code == 201:
            short_link = response.json().get("shortLink", "")
            shortcode = short_link.rsplit("/", 1)[-1]
            if shortcode:
                self.codes.append(shortcode)
                if len(self.codes) > MAX_CODES_PER_USER:
                    self.codes = self.codes[-MAX_CODES_PER_USER:]

    @task(6)
    def redirect(self) -> None:
        if not self.codes:
            self.create_short_url()
            return

        shortcode = random.choice(self.codes)
        self.client.get(
            f"/{shortcode}",
            name="GET /:shortcode",
            allow_redirects=False,
            headers={"Referer": "https://load.example/"},
        )

    @task(2)
    def stats(self) -> None:
        if not self.codes:
            self.create_short_url()
            return

        shortcode = random.choice(self.codes)
        self.client.get(f"/shorturls/{shortcode}", name="GET /shorturls/:shortcode")

    @task(1)
    def list_active(self) -> None:
        self.client.get("/shorturls", params={"active": "true"}, name="GET /shorturls?active")

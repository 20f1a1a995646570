#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for trying out the pin service.

Creates:
  • 8 users
  • A follow graph (each user follows 3 others)
  • 6 tagged pins per user (48 total)
  • Some likes and saves across pins
  • One board per user holding a few of their pins

Run after the API is up:
  python scripts/seed_data.py --api-url http://localhost:8000

All IDs are printed so you can use them in curl commands.
"""
import argparse
import json
import random
import time
import urllib.request
import urllib.error
from dataclasses import dataclass
from typing import Optional


BASE_USERS = [
    ("ana_draws", "Ana Lopez"),
    ("ben_bakes", "Ben Carter"),
    ("cleo_crafts", "Cleo Park"),
    ("dan_decor", "Dan Rossi"),
    ("ella_eats", "Ella Novak"),
    ("finn_frames", "Finn Walsh"),
    ("gia_gardens", "Gia Moreau"),
    ("hugo_hikes", "Hugo Berg"),
]

SAMPLE_PINS = [
    ("Abstract Geometric Art", ["art", "modern", "geometric"]),
    ("Modern Abstract Piece", ["art", "modern"]),
    ("Watercolor Mountain Landscape", ["art", "watercolor", "nature"]),
    ("Sourdough Bread Starter Guide", ["baking", "bread", "recipes"]),
    ("Chocolate Chip Cookies Recipe", ["baking", "dessert", "recipes"]),
    ("Minimalist Living Room Ideas", ["interior", "minimalist", "home"]),
    ("Scandinavian Bedroom Decor", ["interior", "scandinavian", "home"]),
    ("Macrame Wall Hanging Tutorial", ["diy", "crafts", "home"]),
    ("Succulent Garden Arrangement", ["garden", "plants", "diy"]),
    ("Vegetable Garden Layout Plan", ["garden", "vegetables"]),
    ("Alpine Lake Hiking Trail", ["travel", "hiking", "nature"]),
    ("Coastal Road Trip Itinerary", ["travel", "roadtrip"]),
    ("Unrelated Cooking Tips", []),
    ("Quick Weeknight Pasta Dinner", ["recipes", "dinner"]),
    ("Film Photography Street Scenes", ["photography", "film"]),
    ("Golden Hour Portrait Photography", ["photography", "portrait"]),
]


@dataclass
class ApiClient:
    base_url: str
    user_id: Optional[str] = None

    def _headers(self, as_user: Optional[str]) -> dict:
        headers = {"Content-Type": "application/json"}
        uid = as_user or self.user_id
        if uid:
            headers["X-User-Id"] = uid
        return headers

    def post(self, path: str, data: Optional[dict] = None, as_user: Optional[str] = None) -> dict:
        url = f"{self.base_url}{path}"
        body = json.dumps(data or {}).encode()
        req = urllib.request.Request(
            url, data=body, headers=self._headers(as_user), method="POST"
        )
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            body = e.read().decode()
            print(f"  HTTP {e.code} on POST {path}: {body}")
            return {}

    def get(self, path: str) -> dict:
        url = f"{self.base_url}{path}"
        req = urllib.request.Request(url, method="GET")
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on GET {path}")
            return {}


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            result = client.get("/health")
            if result.get("status") == "ok":
                print("  API is ready!\n")
                return
        except OSError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating users...")
    user_ids: list[str] = []
    for username, display_name in BASE_USERS:
        result = client.post("/users/", {"username": username, "display_name": display_name})
        uid = result.get("user_id", "")
        if uid:
            user_ids.append(uid)
            print(f"  ✓ {username} ({uid})")
        else:
            print(f"  ✗ Failed to create {username}")

    if not user_ids:
        print("No users created — aborting")
        return

    # ── Create follow graph ───────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for follower_id in user_ids:
        others = [u for u in user_ids if u != follower_id]
        for followee_id in random.sample(others, k=min(3, len(others))):
            client.post(f"/users/{followee_id}/follow", as_user=follower_id)
    print("  ✓ Follow graph created")

    # ── Create boards + pins ──────────────────────────────────────────────
    print("\nCreating boards and pins...")
    pin_ids: list[str] = []
    for i, user_id in enumerate(user_ids):
        board = client.post(
            "/boards/",
            {"name": f"{BASE_USERS[i][1].split()[0]}'s favourites"},
            as_user=user_id,
        )
        board_id = board.get("board_id")
        for j, (title, tags) in enumerate(random.sample(SAMPLE_PINS, k=6)):
            seed = f"{user_id[:8]}-{j}"
            result = client.post(
                "/pins/",
                {
                    "title": title,
                    "description": f"{title} — saved by {BASE_USERS[i][0]}",
                    "image_url": f"https://picsum.photos/seed/{seed}/400/600",
                    "tags": tags,
                    "board_id": board_id if j < 3 else None,
                },
                as_user=user_id,
            )
            pid = result.get("pin_id", "")
            if pid:
                pin_ids.append(pid)
    print(f"  ✓ {len(pin_ids)} pins created")

    # ── Likes and saves ───────────────────────────────────────────────────
    print("\nAdding likes and saves...")
    likes = saves = 0
    for pin_id in pin_ids:
        for user_id in random.sample(user_ids, k=random.randint(0, 5)):
            client.post(f"/pins/{pin_id}/like", as_user=user_id)
            likes += 1
        for user_id in random.sample(user_ids, k=random.randint(0, 2)):
            client.post(f"/pins/{pin_id}/save", as_user=user_id)
            saves += 1
    print(f"  ✓ {likes} likes, {saves} saves added")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    u = user_ids[0]
    p = pin_ids[0] if pin_ids else "<pin_id>"
    print("# Home feed:")
    print(f"  curl -s '{api_url}/pins/?limit=10' | python3 -m json.tool\n")
    print("# Related pins:")
    print(f"  curl -s '{api_url}/pins/{p}/related' | python3 -m json.tool\n")
    print(f"# Toggle a like as '{BASE_USERS[0][0]}':")
    print(f"  curl -s -X POST -H 'X-User-Id: {u}' '{api_url}/pins/{p}/like'\n")
    print("# Search:")
    print(f"  curl -s '{api_url}/search/?q=art&type=all' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Pinboard API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)

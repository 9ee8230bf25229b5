import json
import os

import requests
from dotenv import load_dotenv

load_dotenv()

API_URL = os.getenv("DISPATCH_API_URL", "http://127.0.0.1:8000/api/assign")


def main() -> None:
    payload = {
        "ticket": {"id": "T-1", "category": "waste", "title": "Overflowing dumpster",
                   "location": {"lat": 11.1085, "lon": 77.3411}},
        "pool": [
            {"id": "W-1", "name": "Asha", "skills": ["waste"], "active_tickets": 2,
             "location": {"lat": 11.1090, "lon": 77.3415}},
            {"id": "W-2", "name": "Ravi", "skills": ["general"], "active_tickets": 9,
             "location": {"lat": 11.1050, "lon": 77.3390}},
        ],
    }
    resp = requests.post(API_URL, json=payload, timeout=60)
    resp.raise_for_status()
    data = resp.json()

    required_keys = {"status", "error", "response"}
    missing = required_keys - set(data.keys())
    assert not missing, f"Missing top-level keys: {missing}"
    assert data["status"] == "ok", f"Request failed: {data['error']}"
    for key in ("candidate_id", "confidence", "provenance", "scores"):
        assert key in data["response"], f"Response missing {key}"

    print("Sanity check passed")
    print(json.dumps(data, indent=2)[:1000])


if __name__ == "__main__":
    main()

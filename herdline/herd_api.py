# herdline/herd_api.py

from typing import Any, Dict, List, Optional

import requests

from .models import Animal, animal_from_record, animals_from_records


DEFAULT_BASE_URL = "http://localhost:8000/api"


# -------------------------------
# HTTP Client Builder
# -------------------------------

def build_client(token: Optional[str] = None) -> requests.Session:
    """
    Build and return a configured HTTP session for the herd records service.
    """
    session = requests.Session()
    session.headers.update({
        "User-Agent": "herdline/1.0",
        "Accept": "application/json",
    })
    if token:
        session.headers["Authorization"] = f"Bearer {token}"
    return session


def _url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + "/" + path.lstrip("/")


# -------------------------------
# Animal records
# -------------------------------

def fetch_animals(
    session: requests.Session,
    base_url: str = DEFAULT_BASE_URL,
    *,
    herd_id: Optional[str] = None,
) -> List[Animal]:
    """
    Fetch every animal record of a herd.

    The service answers with a JSON list of records, or an object with the
    list under "animals" (or "data"). Anything else is a RuntimeError; HTTP
    errors propagate from raise_for_status().
    """
    url = _url(base_url, "animals")
    params: Dict[str, Any] = {}
    if herd_id:
        params["herdId"] = herd_id

    print("[herd_api] Fetching animal records:")
    print(f"  GET {url}")

    resp = session.get(url, params=params or None, timeout=10)
    resp.raise_for_status()
    data = resp.json()

    if isinstance(data, dict):
        data = data.get("animals", data.get("data"))

    if not isinstance(data, list):
        raise RuntimeError(
            f"Unexpected animals response structure: expected list, got {type(data)}"
        )

    animals = animals_from_records(data)
    print(f"[herd_api] Received {len(data)} records ({len(animals)} usable)")
    return animals


def fetch_animal(
    session: requests.Session,
    animal_id: str,
    base_url: str = DEFAULT_BASE_URL,
) -> Animal:
    """
    Fetch a single animal record by id.
    """
    url = _url(base_url, f"animals/{animal_id}")

    resp = session.get(url, timeout=10)
    resp.raise_for_status()

    data = resp.json()
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        data = data["data"]
    if not isinstance(data, dict):
        raise RuntimeError(
            f"Unexpected animal response structure: expected object, got {type(data)}"
        )

    try:
        return animal_from_record(data)
    except ValueError as e:
        raise RuntimeError(f"Animal {animal_id!r} returned an unusable record: {e}") from e

from __future__ import annotations

import pytest
import requests

from herdline.herd_api import build_client, fetch_animal, fetch_animals


class _FakeResponse:
    def __init__(self, payload, status: int = 200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class _FakeSession:
    def __init__(self, payload, status: int = 200):
        self.payload = payload
        self.status = status
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        return _FakeResponse(self.payload, self.status)


def test_build_client_headers() -> None:
    session = build_client(token="abc")
    assert session.headers["User-Agent"] == "herdline/1.0"
    assert session.headers["Authorization"] == "Bearer abc"


def test_fetch_animals_list_and_wrapped() -> None:
    records = [{"id": "a", "sex": "male"}, {"id": "b", "sex": "female", "fatherId": "a"}]

    session = _FakeSession(records)
    animals = fetch_animals(session, "http://herd.test/api/", herd_id="h1")
    assert [a.id for a in animals] == ["a", "b"]
    assert session.calls == [("http://herd.test/api/animals", {"herdId": "h1"}, 10)]

    wrapped = _FakeSession({"animals": records})
    assert len(fetch_animals(wrapped, "http://herd.test/api")) == 2


def test_fetch_animals_unexpected_shape() -> None:
    with pytest.raises(RuntimeError):
        fetch_animals(_FakeSession({"message": "nope"}), "http://herd.test/api")


def test_http_errors_propagate() -> None:
    with pytest.raises(requests.HTTPError):
        fetch_animals(_FakeSession([], status=503), "http://herd.test/api")


def test_fetch_single_animal() -> None:
    session = _FakeSession({"data": {"id": "k", "sex": "f", "motherId": "d"}})
    animal = fetch_animal(session, "k", "http://herd.test/api")
    assert animal.mother_id == "d"
    assert session.calls[0][0] == "http://herd.test/api/animals/k"

    with pytest.raises(RuntimeError):
        fetch_animal(_FakeSession({"id": "k"}), "k", "http://herd.test/api")

from scripts import fetch_data


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, pages):
        self.pages = list(pages)
        self.offsets = []

    def get(self, url, params=None, timeout=None):
        self.offsets.append(params["$offset"])
        return FakeResponse(self.pages.pop(0))


def test_session_retries_throttled_requests():
    session = fetch_data.build_session(app_token="secret")
    retries = session.get_adapter("https://data.lacity.org/resource/x.json").max_retries
    assert retries.total == fetch_data.MAX_RETRY_ATTEMPTS - 1
    assert 429 in retries.status_forcelist
    assert retries.respect_retry_after_header
    assert session.headers["X-App-Token"] == "secret"


def test_session_without_token():
    assert "X-App-Token" not in fetch_data.build_session(app_token=None).headers


def test_fetch_pages_until_short_page(monkeypatch):
    monkeypatch.setattr(fetch_data, "SOC_PAGINATION_LIMIT", 2)
    monkeypatch.setattr(fetch_data.time, "sleep", lambda seconds: None)
    session = FakeSession([[{"rpt_id": "1"}, {"rpt_id": "2"}], [{"rpt_id": "3"}]])

    records = fetch_data.fetch_arrest_records("https://example.test", session=session)

    assert [record["rpt_id"] for record in records] == ["1", "2", "3"]
    assert session.offsets == [0, 2]


def test_fetch_stops_on_empty_page(monkeypatch):
    monkeypatch.setattr(fetch_data.time, "sleep", lambda seconds: None)
    session = FakeSession([[]])
    assert fetch_data.fetch_arrest_records("https://example.test", session=session) == []
    assert session.offsets == [0]

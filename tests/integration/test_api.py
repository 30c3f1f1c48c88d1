from __future__ import annotations

import json

from profile_check.errors import AuthFailure
from profile_check.locale import GERMANY
from profile_check.models import ResultKind

from tests.fakes import FakeSearchClient, business

CREDS = {"login": "user@example.com", "password": "secret"}


def _acme_client() -> FakeSearchClient:
    return FakeSearchClient(
        {
            "acme.de": [
                business(
                    "Acme GmbH",
                    "https://www.acme.de/",
                    kind=ResultKind.LOCAL_PACK,
                    address="Hauptstr. 1, Berlin",
                    rating_value=4.6,
                ),
            ],
        }
    )


def test_health_endpoints(client):
    assert client.get("/health").json() == {"status": "ok"}
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_check_domains_end_to_end(make_client):
    fake = _acme_client()
    client = make_client(fake)

    response = client.post(
        "/api/check-domains",
        json={"domains": ["acme.de", "badsite.invalid"], "credentials": CREDS},
    )

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    body = response.json()
    assert body["success"] is True
    assert (body["total"], body["found"], body["notFound"], body["errors"]) == (2, 1, 1, 0)

    acme, bad = body["results"]
    assert acme["domain"] == "acme.de"
    assert acme["outcome"] == "found"
    assert acme["title"] == "Acme GmbH"
    assert acme["address"] == "Hauptstr. 1, Berlin"
    assert acme["rating"] == 4.6
    assert acme["matchedQuery"] == "acme.de"
    assert acme["kind"] == "localPack"
    assert bad == {"domain": "badsite.invalid", "outcome": "not-found", "message": "No business profile found"}

    acme_locales = {locale for query, locale in fake.calls if "acme" in query.lower()}
    assert acme_locales == {GERMANY}


def test_blank_entries_are_dropped(make_client):
    client = make_client(_acme_client())
    response = client.post("/api/check-domains", json={"domains": ["", " acme.de ", "  "], "credentials": CREDS})
    assert response.json()["total"] == 1


def test_empty_domain_list_is_rejected(client, fake_client):
    response = client.post("/api/check-domains", json={"domains": [], "credentials": CREDS})
    assert response.status_code == 400
    response = client.post("/api/check-domains", json={"domains": ["", "  "], "credentials": CREDS})
    assert response.status_code == 400
    assert fake_client.calls == []


def test_too_many_domains_are_rejected(make_client):
    client = make_client(MAX_DOMAINS_PER_REQUEST="2")
    response = client.post("/api/check-domains", json={"domains": ["a.de", "b.de", "c.de"], "credentials": CREDS})
    assert response.status_code == 400


def test_missing_credentials_are_rejected(client):
    response = client.post("/api/check-domains", json={"domains": ["acme.de"]})
    assert response.status_code == 400

    blank = {"login": "user", "password": "  "}
    response = client.post("/api/check-domains", json={"domains": ["acme.de"], "credentials": blank})
    assert response.status_code == 400


def test_unknown_fields_are_rejected(client):
    response = client.post("/api/check-domains", json={"domains": ["acme.de"], "credentials": CREDS, "extra": 1})
    assert response.status_code == 422


def test_server_credentials_require_service_key(make_client):
    client = make_client(
        DATAFORSEO_LOGIN="server",
        DATAFORSEO_PASSWORD="server-pw",
        SERVICE_API_KEY="test-secret",
        SERVICE_LOCALHOST_BYPASS="false",
    )

    unauthorized = client.post("/api/check-domains", json={"domains": ["acme.de"]})
    assert unauthorized.status_code == 401

    authorized = client.post("/api/check-domains", json={"domains": ["acme.de"]}, headers={"X-API-Key": "test-secret"})
    assert authorized.status_code == 200

    bearer = client.post(
        "/api/check-domains",
        json={"domains": ["acme.de"]},
        headers={"Authorization": "Bearer test-secret"},
    )
    assert bearer.status_code == 200

    own_credentials = client.post("/api/check-domains", json={"domains": ["acme.de"], "credentials": CREDS})
    assert own_credentials.status_code == 200


def test_rejected_credentials_mark_report(make_client):
    client = make_client(FakeSearchClient(default=AuthFailure("Authentication failed", status_code=40100)))

    response = client.post(
        "/api/check-domains",
        json={"domains": ["a.de", "b.de", "c.de"], "credentials": CREDS, "batchSize": 1},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert body["authRejected"] is True
    assert body["errors"] == 3
    assert {row["failure"] for row in body["results"]} == {"auth"}


def test_check_single_domain(make_client):
    client = make_client(_acme_client())
    response = client.post("/api/check-domain", json={"domain": "acme.de", "credentials": CREDS})
    assert response.status_code == 200
    assert response.json()["outcome"] == "found"

    blank = client.post("/api/check-domain", json={"domain": "  ", "credentials": CREDS})
    assert blank.status_code == 400


def test_stream_emits_progress_then_summary(make_client):
    client = make_client(_acme_client())

    response = client.post(
        "/api/check-domains/stream",
        json={"domains": ["acme.de", "badsite.invalid", "other.co.uk"], "credentials": CREDS, "batchSize": 2},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    events = [json.loads(line) for line in response.text.splitlines() if line]
    assert [event["event"] for event in events] == ["progress", "progress", "summary"]
    assert [event["processedCount"] for event in events[:2]] == [2, 3]
    assert events[-1]["found"] == 1
    assert events[-1]["total"] == 3


def test_export_written_and_downloadable(make_client):
    client = make_client(_acme_client())

    response = client.post(
        "/api/check-domains",
        json={"domains": ["acme.de", "badsite.invalid"], "credentials": CREDS, "export": "csv"},
    )
    filename = response.json()["exportFile"]
    assert filename.endswith(".csv")

    listing = client.get("/api/exports/files").json()
    assert [entry["name"] for entry in listing] == [filename]

    download = client.get(f"/api/exports/files/{filename}")
    assert download.status_code == 200
    assert download.text.splitlines()[0].startswith('"Domain","Status"')

    assert client.get("/api/exports/files/missing.csv").status_code == 404
    assert client.get("/api/exports/files/notes.exe").status_code == 404


def test_static_dir_is_served(make_client, tmp_path):
    static_dir = tmp_path / "static"
    static_dir.mkdir()
    (static_dir / "index.html").write_text("<h1>Profile check</h1>", encoding="utf-8")

    client = make_client(STATIC_DIR=str(static_dir))

    assert "Profile check" in client.get("/").text
    assert client.get("/api/health").status_code == 200

"""
Tests for the metered GitHub summarizer endpoint.
"""
import asyncio
from unittest.mock import patch

import pytest
from fastapi import status

from gitsum.api.v1.endpoints import summarizer
from gitsum.core.errors import GitHubFetchError
from gitsum.models.api_key import APIKey

README = """# Widget

A tiny library for making widgets.

## Features
- Fast
- Small
- Friendly

Run pip install widget to get started.
"""

REPO_URL = "https://github.com/acme/widget"
RAW_URL = "https://raw.githubusercontent.com/acme/widget/main/README.md"


@pytest.fixture
def github():
    """Stub out GitHub so no network calls are made."""
    with patch("gitsum.services.github_service.resolve_raw_url", return_value=RAW_URL) as resolve, \
            patch("gitsum.services.github_service.fetch_content", return_value=README) as fetch:
        yield resolve, fetch


def _bearer(credential):
    return {"Authorization": f"Bearer {credential}"}


def _usage(db_session, key_id):
    db_session.expire_all()
    return db_session.get(APIKey, key_id).usage


def test_summarize_with_bearer_key(client, user, make_key, github, db_session):
    db_key = make_key(user)

    response = client.post("/api/v1/github-summarizer", json={"githubUrl": REPO_URL}, headers=_bearer(db_key.key))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["summary"].startswith("Widget")
    assert "Project name: Widget" in data["cool_facts"]
    assert _usage(db_session, db_key.id) == 1

    resolve, fetch = github
    resolve.assert_called_once_with(REPO_URL)
    fetch.assert_called_once_with(RAW_URL)


def test_summarize_with_x_api_key_header(client, user, make_key, github, db_session):
    db_key = make_key(user)

    response = client.post("/api/v1/github-summarizer", json={"githubUrl": REPO_URL}, headers={"X-API-Key": db_key.key})

    assert response.status_code == status.HTTP_200_OK
    assert _usage(db_session, db_key.id) == 1


def test_bearer_header_wins_over_x_api_key(client, user, make_key, github):
    db_key = make_key(user)

    response = client.post(
        "/api/v1/github-summarizer",
        json={"githubUrl": REPO_URL},
        headers={"Authorization": f"Bearer {db_key.key}", "X-API-Key": "does-not-exist"},
    )

    assert response.status_code == status.HTTP_200_OK


def test_missing_key_is_rejected_before_any_fetch(client, github):
    response = client.post("/api/v1/github-summarizer", json={"githubUrl": REPO_URL})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    data = response.json()
    assert data["error"] == "API key is required"
    assert data["valid"] is False

    resolve, fetch = github
    resolve.assert_not_called()
    fetch.assert_not_called()


def test_unknown_key_is_unauthorized(client, github):
    response = client.post("/api/v1/github-summarizer", json={"githubUrl": REPO_URL}, headers=_bearer("does-not-exist"))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"error": "Invalid API key", "valid": False}
    github[1].assert_not_called()


def test_quota_is_enforced_across_calls(client, user, make_key, github, db_session):
    db_key = make_key(user, limit=2)

    responses = [
        client.post("/api/v1/github-summarizer", json={"githubUrl": REPO_URL}, headers=_bearer(db_key.key))
        for _ in range(3)
    ]

    assert [r.status_code for r in responses] == [200, 200, status.HTTP_429_TOO_MANY_REQUESTS]
    rejected = responses[2].json()
    assert rejected["valid"] is False
    assert rejected["usage"] == 2
    assert rejected["limit"] == 2
    assert _usage(db_session, db_key.id) == 2
    assert github[1].call_count == 2


def test_invalid_url_is_rejected_without_charge(client, user, make_key, github, db_session):
    db_key = make_key(user)

    response = client.post(
        "/api/v1/github-summarizer",
        json={"githubUrl": "https://gitlab.com/acme/widget"},
        headers=_bearer(db_key.key),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["valid"] is False
    assert _usage(db_session, db_key.id) == 0


def test_malformed_body_is_rejected(client, user, make_key, github):
    db_key = make_key(user)

    response = client.post(
        "/api/v1/github-summarizer",
        content=b"not json",
        headers={**_bearer(db_key.key), "Content-Type": "application/json"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "Invalid request body" in response.json()["error"]


def test_unsupported_file_url_is_bad_request(client, user, make_key, db_session):
    db_key = make_key(user)

    with patch("gitsum.services.github_service.resolve_raw_url", return_value=None):
        response = client.post(
            "/api/v1/github-summarizer",
            json={"githubUrl": "https://github.com/acme/widget/tree/main/docs"},
            headers=_bearer(db_key.key),
        )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "not a supported GitHub file URL" in response.json()["error"]
    # The charge happens before resolution and is not refunded
    assert _usage(db_session, db_key.id) == 1


def test_github_failure_is_bad_gateway_and_still_charged(client, user, make_key, db_session):
    db_key = make_key(user)

    with patch("gitsum.services.github_service.resolve_raw_url", return_value=RAW_URL), \
            patch("gitsum.services.github_service.fetch_content",
                  side_effect=GitHubFetchError("Failed to fetch file from GitHub (status 404): Not Found", 404)):
        response = client.post("/api/v1/github-summarizer", json={"githubUrl": REPO_URL}, headers=_bearer(db_key.key))

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    data = response.json()
    assert data["error"] == "Failed to fetch content from GitHub"
    assert data["rawUrl"] == RAW_URL
    assert "404" in data["githubContentError"]
    assert _usage(db_session, db_key.id) == 1


def test_blob_url_is_summarized(client, user, make_key):
    db_key = make_key(user)
    blob_url = "https://github.com/acme/widget/blob/main/docs/guide.md"

    with patch("gitsum.services.github_service.fetch_content", return_value=README) as fetch:
        response = client.post("/api/v1/github-summarizer", json={"githubUrl": blob_url}, headers=_bearer(db_key.key))

    assert response.status_code == status.HTTP_200_OK
    fetch.assert_called_once_with("https://raw.githubusercontent.com/acme/widget/main/docs/guide.md")


def test_key_check_runs_off_the_event_loop(client, user, make_key, github):
    db_key = make_key(user)
    real_authorize = summarizer.authorize_credential
    loop_running = []

    def recording_authorize(db, credential):
        try:
            asyncio.get_running_loop()
            loop_running.append(True)
        except RuntimeError:
            loop_running.append(False)
        return real_authorize(db, credential)

    with patch.object(summarizer, "authorize_credential", side_effect=recording_authorize):
        response = client.post("/api/v1/github-summarizer", json={"githubUrl": REPO_URL}, headers=_bearer(db_key.key))

    assert response.status_code == status.HTTP_200_OK
    assert loop_running == [False]

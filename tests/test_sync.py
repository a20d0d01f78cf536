import base64
import json
from datetime import datetime, timezone

import pytest
import requests

from linkdash import sync as sync_mod
from linkdash.config import Settings
from linkdash.sync import GitHubSync, SyncError, build_commit_payload

NOW = datetime(2026, 1, 8, 2, 3, 4, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code, body=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else (json.dumps(body) if body is not None else "")
        self.content = self.text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def make_sync(tmp_path, session, content='[{"id": 1}]'):
    data_file = tmp_path / "data.json"
    if content is not None:
        data_file.write_text(content, encoding="utf-8")
    return GitHubSync("ghp_x", "me/dash-data", data_file, session=session)


def test_payload_without_remote_file_has_no_sha():
    payload = build_commit_payload("[]", None, NOW)
    assert payload == {
        "message": "Update data.json - 2026/1/8 10:03:04",
        "content": base64.b64encode(b"[]").decode(),
        "branch": "main",
    }


def test_creates_when_remote_missing(tmp_path):
    session = FakeSession(FakeResponse(404, {"message": "Not Found"}), FakeResponse(201, {"content": {}}))
    make_sync(tmp_path, session).run(now=NOW)

    (get_method, get_url, get_kwargs), (put_method, put_url, put_kwargs) = session.calls
    assert get_method == "GET"
    assert get_url == "https://api.github.com/repos/me/dash-data/contents/data.json"
    assert get_kwargs["params"] == {"ref": "main"}
    assert get_kwargs["headers"]["Authorization"] == "token ghp_x"
    assert put_method == "PUT" and put_url == get_url
    payload = put_kwargs["json"]
    assert "sha" not in payload
    assert base64.b64decode(payload["content"]).decode("utf-8") == '[{"id": 1}]'
    assert payload["branch"] == "main"
    assert "2026/1/8 10:03:04" in payload["message"]


def test_updates_with_exact_remote_sha(tmp_path):
    session = FakeSession(FakeResponse(200, {"sha": "abc123", "path": "data.json"}), FakeResponse(200, {}))
    make_sync(tmp_path, session).run(now=NOW)
    assert session.calls[1][2]["json"]["sha"] == "abc123"


def test_empty_local_document_aborts_before_network(tmp_path):
    session = FakeSession()
    with pytest.raises(SyncError):
        make_sync(tmp_path, session, content="").run()
    assert session.calls == []


def test_missing_local_document_aborts_before_network(tmp_path):
    session = FakeSession()
    with pytest.raises(SyncError):
        make_sync(tmp_path, session, content=None).run()
    assert session.calls == []


def test_remote_error_other_than_404_is_fatal(tmp_path):
    session = FakeSession(FakeResponse(403, {"message": "Bad credentials"}))
    with pytest.raises(SyncError, match="403"):
        make_sync(tmp_path, session).run()
    assert len(session.calls) == 1


def test_stale_sha_conflict_is_surfaced(tmp_path):
    session = FakeSession(FakeResponse(200, {"sha": "old"}), FakeResponse(409, {"message": "conflict"}))
    with pytest.raises(SyncError, match="409"):
        make_sync(tmp_path, session).run()
    assert len(session.calls) == 2


def test_network_error_is_fatal(tmp_path):
    session = FakeSession(requests.ConnectionError("offline"))
    with pytest.raises(SyncError):
        make_sync(tmp_path, session).run()


def test_invalid_json_is_fatal(tmp_path):
    session = FakeSession(FakeResponse(200, text="<html>"))
    with pytest.raises(SyncError):
        make_sync(tmp_path, session).run()


def test_repo_must_be_owner_slash_name(tmp_path):
    with pytest.raises(SyncError):
        GitHubSync("t", "just-a-name", tmp_path / "data.json", session=FakeSession())


def test_from_settings_requires_token_and_repo(tmp_path):
    with pytest.raises(SyncError):
        GitHubSync.from_settings(Settings(data_file=tmp_path / "data.json"))


def test_cli_exit_codes(tmp_path, monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_REPO", raising=False)
    assert sync_mod.main(["--data-file", str(tmp_path / "data.json")]) == 1

    (tmp_path / "data.json").write_text("[]", encoding="utf-8")
    monkeypatch.setenv("GITHUB_TOKEN", "t")
    monkeypatch.setenv("GITHUB_REPO", "me/repo")
    monkeypatch.setattr(GitHubSync, "run", lambda self, now=None: {})
    assert sync_mod.main(["--data-file", str(tmp_path / "data.json")]) == 0


def test_redirect_on_put_is_not_success(tmp_path):
    session = FakeSession(FakeResponse(404, {}), FakeResponse(302, text=""))
    with pytest.raises(SyncError, match="302"):
        make_sync(tmp_path, session).run()

import json
import sys

import httpx
import pytest

from awesome_search.container import container
from awesome_search.core.services.refresh_service import sign_payload
from awesome_search.presentation import cli


@pytest.fixture(autouse=True)
def fresh_container(monkeypatch, db_path):
    monkeypatch.setattr(cli.settings, "awesome_db_path", str(db_path))
    monkeypatch.setattr(cli.settings, "webhook_secret", "s3cret")
    container.reset()
    yield
    container.reset()


def run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["awesome-search", *args])
    cli.main()


def test_build(monkeypatch, capsys):
    run(monkeypatch, "build")
    out = capsys.readouterr().out

    assert "Documents: 6" in out
    assert "Hash:" in out


def test_build_missing_database(monkeypatch, tmp_path):
    monkeypatch.setattr(cli.settings, "awesome_db_path", str(tmp_path / "absent.db"))
    with pytest.raises(SystemExit) as exc:
        run(monkeypatch, "build")
    assert exc.value.code == 1


def test_search(monkeypatch, capsys):
    run(monkeypatch, "search", "redux")
    out = capsys.readouterr().out

    assert out.startswith("2 results (1 pages)")
    assert "redux-toolkit" in out


def test_search_needs_query(monkeypatch):
    with pytest.raises(SystemExit):
        run(monkeypatch, "search")


def test_unknown_command(monkeypatch, capsys):
    with pytest.raises(SystemExit) as exc:
        run(monkeypatch, "explode")
    assert exc.value.code == 1
    assert "Unknown command" in capsys.readouterr().out


def test_notify_posts_signed_payload(monkeypatch):
    sent = {}

    def fake_post(url, content, headers, timeout):
        sent.update(url=url, content=content, headers=headers)
        return httpx.Response(200, json={"success": True, "message": "ok"})

    monkeypatch.setattr(cli.httpx, "post", fake_post)
    run(monkeypatch, "notify", "http://localhost:8000/")

    assert sent["url"] == "http://localhost:8000/api/webhook"
    assert sent["headers"]["x-github-secret"] == sign_payload(sent["content"], "s3cret")
    payload = json.loads(sent["content"])
    assert payload["lists_count"] == 4
    assert payload["repos_count"] == 6


def test_notify_rejected(monkeypatch):
    monkeypatch.setattr(
        cli.httpx, "post", lambda *a, **kw: httpx.Response(401, json={"error": "Invalid signature"})
    )
    with pytest.raises(SystemExit):
        run(monkeypatch, "notify", "http://localhost:8000")

"""
Test Suite for the Scoring Service
==================================
Engine pipeline, fetcher, Flask endpoints and CLI, with HTTP mocked.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
import requests
from click.testing import CliRunner

from answerkey.cli import cli
from answerkey.engine import PipelineState, ScoreConfig, ScoreEngine
from answerkey.errors import (
    ExtractionExhaustedError,
    FetchTimeoutError,
    InputValidationError,
    UpstreamFetchError,
)
from answerkey.fetcher import fetch_document, fetch_image_data_uri, validate_url
from answerkey.server import create_app
from answerkey.storage import SavedKeyArchive

from conftest import EMPTY_PAGE, STRUCTURED_PAGE, TABLE_PAGE, TEXT_PAGE, MemoryStorage, make_response

KEY_URL = "https://results.example.org/key/abc.html"


def inline_engine(storage=None, **overrides) -> ScoreEngine:
    config = ScoreConfig(background_archive=False, log_level="WARNING", **overrides)
    return ScoreEngine(config, archive=SavedKeyArchive(storage or MemoryStorage()))


# ═══════════════════════════════════════════════════════════════════════════════
# FETCHER
# ═══════════════════════════════════════════════════════════════════════════════


class TestValidateUrl:

    def test_trims(self):
        assert validate_url("  https://a.example/k  ") == "https://a.example/k"
        assert validate_url("HTTP://a.example/k") == "HTTP://a.example/k"

    @pytest.mark.parametrize("value", [None, "", "   ", 42])
    def test_missing(self, value):
        with pytest.raises(InputValidationError, match="Missing"):
            validate_url(value)

    def test_scheme(self):
        with pytest.raises(InputValidationError, match="http or https") as exc:
            validate_url("ftp://a.example/k")
        assert exc.value.status_code == 400


class TestFetchDocument:

    @patch("answerkey.fetcher.requests.get")
    def test_success(self, mock_get):
        mock_get.return_value = make_response("<p>ok</p>")
        assert fetch_document(KEY_URL) == "<p>ok</p>"
        _, kwargs = mock_get.call_args
        assert kwargs["timeout"] == 15
        assert "User-Agent" in kwargs["headers"]

    @patch("answerkey.fetcher.requests.get")
    def test_streams_and_closes(self, mock_get):
        response = make_response("<p>ok</p>")
        mock_get.return_value = response
        fetch_document(KEY_URL)
        _, kwargs = mock_get.call_args
        assert kwargs["stream"] is True
        response.close.assert_called_once()

    @patch("answerkey.fetcher.requests.get")
    def test_slow_body_hits_total_deadline(self, mock_get):
        response = make_response()
        response.iter_content.return_value = [b"<p>", b"still ", b"coming"]
        mock_get.return_value = response
        ticks = iter([0.0, 5.0, 16.0])

        with patch("answerkey.fetcher.time.monotonic", side_effect=lambda: next(ticks, 16.0)):
            with pytest.raises(FetchTimeoutError) as exc:
                fetch_document(KEY_URL, timeout=15)

        assert exc.value.status_code == 504
        response.close.assert_called_once()

    @patch("answerkey.fetcher.requests.get")
    def test_charset_from_meta_when_header_has_none(self, mock_get):
        body = b'<html><head><meta charset="windows-1252"></head><p>Caf\xe9</p></html>'
        mock_get.return_value = make_response(content=body, content_type="text/html")
        assert "Café" in fetch_document(KEY_URL)

    @patch("answerkey.fetcher.requests.get")
    def test_non_success_status_is_forwarded(self, mock_get):
        mock_get.return_value = make_response("gone", status_code=404)
        with pytest.raises(UpstreamFetchError) as exc:
            fetch_document(KEY_URL)
        assert exc.value.status_code == 404

    @patch("answerkey.fetcher.requests.get", side_effect=requests.Timeout("slow"))
    def test_timeout(self, mock_get):
        with pytest.raises(FetchTimeoutError) as exc:
            fetch_document(KEY_URL)
        assert exc.value.status_code == 504

    @patch("answerkey.fetcher.requests.get", side_effect=requests.ConnectionError("refused"))
    def test_network_failure(self, mock_get):
        with pytest.raises(UpstreamFetchError) as exc:
            fetch_document(KEY_URL)
        assert exc.value.status_code == 500


class TestFetchImage:

    @patch("answerkey.fetcher.requests.get")
    def test_data_uri(self, mock_get):
        mock_get.return_value = make_response(content=b"\x89PNG", content_type="image/png")
        assert fetch_image_data_uri("https://cdn.example.org/a.png") == "data:image/png;base64,iVBORw=="

    @patch("answerkey.fetcher.requests.get")
    def test_default_content_type(self, mock_get):
        mock_get.return_value = make_response(content=b"abc", content_type="")
        assert fetch_image_data_uri("https://cdn.example.org/a").startswith("data:image/jpeg;base64,")

    @patch("answerkey.fetcher.requests.get")
    def test_failure_is_502(self, mock_get):
        mock_get.return_value = make_response(status_code=404)
        with pytest.raises(UpstreamFetchError) as exc:
            fetch_image_data_uri("https://cdn.example.org/a.png")
        assert exc.value.status_code == 502


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════════


class TestScoreEngine:

    def test_structured_page(self):
        storage = MemoryStorage()
        engine = inline_engine(storage)
        result = engine.score_html(STRUCTURED_PAGE, KEY_URL)

        assert engine.state == PipelineState.DONE
        assert result.strategy == "structured"
        assert (result.correct, result.wrong, result.blank) == (2, 1, 0)
        assert result.attempted == 3
        assert result.questions == 3
        assert result.total == 1.67
        assert [(s.name, s.total) for s in result.sections] == [
            ("Mathematics", 0.67),
            ("Reasoning", 1.0),
        ]
        assert [(s.name, s.questions) for s in result.sections_detected] == [
            ("Mathematics", 2),
            ("Reasoning", 1),
        ]
        assert result.meta.name == "Asha Verma"
        assert result.meta.exam_images[0] == "https://cdn.example.org/board-logo.png"

    def test_archives_redacted_copy(self):
        storage = MemoryStorage()
        inline_engine(storage).score_html(STRUCTURED_PAGE, KEY_URL)

        [(name, saved)] = storage.files.items()
        assert name == "exam-general-ability-15-06-2024-9-00-am-10-30-am.html"
        assert "Asha Verma" not in saved
        assert "15/06/2024" in saved

    def test_page_without_url_or_exam_slot_not_archived(self):
        storage = MemoryStorage()
        engine = inline_engine(storage)
        engine.score_html(TEXT_PAGE)
        engine.score_html(TABLE_PAGE)
        assert storage.writes == 0
        assert engine.state == PipelineState.DONE

    def test_page_without_url_archived_by_exam_slot(self):
        storage = MemoryStorage()
        inline_engine(storage).score_html(STRUCTURED_PAGE)
        assert list(storage.files) == ["exam-general-ability-15-06-2024-9-00-am-10-30-am.html"]

    def test_archive_disabled(self):
        storage = MemoryStorage()
        inline_engine(storage, archive_enabled=False).score_html(STRUCTURED_PAGE, KEY_URL)
        assert storage.writes == 0

    def test_archive_failure_does_not_affect_result(self):
        class BrokenStorage(MemoryStorage):
            def exists(self, name):
                raise OSError("storage offline")

        result = inline_engine(BrokenStorage()).score_html(STRUCTURED_PAGE, KEY_URL)
        assert result.total == 1.67

    def test_text_page_has_no_sections(self):
        result = inline_engine().score_html(TEXT_PAGE, KEY_URL)
        assert result.strategy == "text"
        assert (result.correct, result.wrong, result.blank) == (1, 1, 1)
        assert result.total == 0.67
        assert result.sections == []
        assert result.sections_detected == []

    def test_table_page(self):
        result = inline_engine().score_html(TABLE_PAGE, KEY_URL)
        assert result.strategy == "table"
        assert (result.correct, result.wrong, result.blank) == (1, 1, 1)

    def test_unrecognized_page(self):
        storage = MemoryStorage()
        engine = inline_engine(storage)
        with pytest.raises(ExtractionExhaustedError) as exc:
            engine.score_html(EMPTY_PAGE, KEY_URL)
        assert exc.value.status_code == 422
        assert engine.state == PipelineState.FAILED
        assert storage.writes == 0

    @patch("answerkey.fetcher.requests.get")
    def test_score_url(self, mock_get):
        mock_get.return_value = make_response(STRUCTURED_PAGE)
        result = inline_engine().score_url(KEY_URL)
        assert result.url == KEY_URL
        assert result.total == 1.67

    @patch("answerkey.fetcher.requests.get", side_effect=requests.Timeout("slow"))
    def test_fetch_failure_marks_failed(self, mock_get):
        engine = inline_engine()
        with pytest.raises(FetchTimeoutError):
            engine.score_url(KEY_URL)
        assert engine.state == PipelineState.FAILED

    def test_invalid_url_never_fetches(self):
        with patch("answerkey.fetcher.requests.get") as mock_get:
            with pytest.raises(InputValidationError):
                inline_engine().score_url("file:///etc/passwd")
        mock_get.assert_not_called()

    def test_response_shape(self):
        data = inline_engine().score_html(STRUCTURED_PAGE, KEY_URL).to_response()
        assert set(data) >= {
            "url", "total", "correct", "wrong", "blank", "attempted",
            "questions", "sections", "sectionsDetected", "meta", "rule",
        }
        assert data["sectionsDetected"][0] == {"name": "Mathematics", "questions": 2}
        assert data["meta"]["testDate"] == "15/06/2024"
        assert "rollNumber" not in data["meta"]
        assert data["rule"]["correct"] == 1
        assert data["rule"]["wrong"] == pytest.approx(-1 / 3)
        assert data["rule"]["blank"] == 0


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP SERVICE
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def client(tmp_path):
    app = create_app({
        "TESTING": True,
        "SAVED_KEYS_DIR": str(tmp_path / "saved-keys"),
        "BACKGROUND_ARCHIVE": False,
        "ARCHIVE_ENABLED": True,
        "LOG_LEVEL": "WARNING",
    })
    return app.test_client()


class TestScoreEndpoint:

    def test_missing_url(self, client):
        resp = client.post("/api/score", json={})
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Missing `url` in request body."}

    @pytest.mark.parametrize("body", [[KEY_URL], KEY_URL, 42, None])
    def test_non_object_body_is_missing_url(self, body, client):
        with patch("answerkey.fetcher.requests.get") as mock_get:
            resp = client.post("/api/score", data=json.dumps(body), content_type="application/json")
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Missing `url` in request body."}
        mock_get.assert_not_called()

    def test_invalid_body(self, client):
        resp = client.post("/api/score", data="not json", content_type="text/plain")
        assert resp.status_code == 400

    def test_bad_scheme(self, client):
        resp = client.post("/api/score", json={"url": "ftp://a.example/k"})
        assert resp.status_code == 400

    @patch("answerkey.fetcher.requests.get")
    def test_success(self, mock_get, client):
        mock_get.return_value = make_response(STRUCTURED_PAGE)
        resp = client.post("/api/score", json={"url": KEY_URL})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["total"] == 1.67
        assert data["sections"][0]["name"] == "Mathematics"
        assert data["sectionsDetected"][1] == {"name": "Reasoning", "questions": 1}
        assert data["meta"]["testCentre"] == "iON Digital Zone Noida"

    @patch("answerkey.fetcher.requests.get")
    def test_upstream_status(self, mock_get, client):
        mock_get.return_value = make_response("down", status_code=503)
        resp = client.post("/api/score", json={"url": KEY_URL})
        assert resp.status_code == 503
        assert "503" in resp.get_json()["error"]

    @patch("answerkey.fetcher.requests.get", side_effect=requests.Timeout("slow"))
    def test_timeout(self, mock_get, client):
        resp = client.post("/api/score", json={"url": KEY_URL})
        assert resp.status_code == 504

    @patch("answerkey.fetcher.requests.get")
    def test_unrecognized_page(self, mock_get, client):
        mock_get.return_value = make_response(EMPTY_PAGE)
        resp = client.post("/api/score", json={"url": KEY_URL})
        assert resp.status_code == 422
        assert "Could not detect any questions" in resp.get_json()["error"]

    @patch("answerkey.engine.compute_score", side_effect=RuntimeError("boom"))
    @patch("answerkey.fetcher.requests.get")
    def test_unexpected_failure(self, mock_get, mock_score, client):
        mock_get.return_value = make_response(STRUCTURED_PAGE)
        resp = client.post("/api/score", json={"url": KEY_URL})
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Unknown error"}


class TestSavedKeysEndpoints:

    @patch("answerkey.fetcher.requests.get")
    def test_list_read_delete(self, mock_get, client):
        mock_get.return_value = make_response(STRUCTURED_PAGE)
        client.post("/api/score", json={"url": KEY_URL})

        files = client.get("/api/saved-keys").get_json()["files"]
        assert len(files) == 1
        name = files[0]["name"]
        assert name.startswith("exam-")
        assert files[0]["size"] > 0

        resp = client.get(f"/api/saved-keys/{name}")
        assert resp.status_code == 200
        assert f'filename="{name}"' in resp.headers["Content-Disposition"]
        assert b"Asha Verma" not in resp.data

        assert client.post(f"/api/saved-keys/{name}/delete").get_json() == {"ok": True}
        assert client.post(f"/api/saved-keys/{name}/delete").status_code == 404
        assert client.get(f"/api/saved-keys/{name}").status_code == 404

    @patch("answerkey.fetcher.requests.get")
    def test_scoring_same_key_twice_saves_once(self, mock_get, client):
        mock_get.return_value = make_response(STRUCTURED_PAGE)
        client.post("/api/score", json={"url": KEY_URL})
        client.post("/api/score", json={"url": KEY_URL + "?again=1"})
        assert len(client.get("/api/saved-keys").get_json()["files"]) == 1

    def test_empty_listing(self, client):
        data = client.get("/api/saved-keys").get_json()
        assert data["files"] == []

    def test_disallowed_name(self, client):
        assert client.get("/api/saved-keys/notes.txt").status_code == 404
        assert client.post("/api/saved-keys/notes.txt/delete").status_code == 404


class TestProxyImageEndpoint:

    def test_missing_url(self, client):
        assert client.get("/api/proxy-image").status_code == 400

    @patch("answerkey.fetcher.requests.get")
    def test_success(self, mock_get, client):
        mock_get.return_value = make_response(content=b"GIF89a", content_type="image/gif")
        resp = client.get("/api/proxy-image?url=https://cdn.example.org/a.gif")
        assert resp.get_json() == {"dataUrl": "data:image/gif;base64,R0lGODlh"}

    @patch("answerkey.fetcher.requests.get", side_effect=requests.ConnectionError("refused"))
    def test_failure(self, mock_get, client):
        assert client.get("/api/proxy-image?url=https://cdn.example.org/a.gif").status_code == 502


def test_health(client):
    data = client.get("/api/health").get_json()
    assert data["status"] == "healthy"


# ═══════════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════════


class TestCli:

    def test_score_file_json(self, tmp_path):
        page = tmp_path / "key.html"
        page.write_text(STRUCTURED_PAGE, encoding="utf-8")
        result = CliRunner().invoke(cli, ["score-file", str(page), "--json-output", "--no-archive"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["total"] == 1.67
        assert data["url"].startswith("file://")

    def test_score_file_table_and_archive(self, tmp_path):
        page = tmp_path / "key.html"
        page.write_text(TEXT_PAGE, encoding="utf-8")
        saved_dir = tmp_path / "saved"
        result = CliRunner().invoke(cli, [
            "score-file", str(page), "--url", KEY_URL, "--saved-dir", str(saved_dir),
        ])
        assert result.exit_code == 0, result.output
        assert "Overall" in result.stdout
        assert len(list(saved_dir.glob("key-*.html"))) == 1

        listing = CliRunner().invoke(cli, ["saved", "--saved-dir", str(saved_dir)])
        assert listing.exit_code == 0
        assert "key-" in listing.stdout

    def test_unrecognized_page_exits_nonzero(self, tmp_path):
        page = tmp_path / "key.html"
        page.write_text(EMPTY_PAGE, encoding="utf-8")
        result = CliRunner().invoke(cli, ["score-file", str(page), "--no-archive"])
        assert result.exit_code == 1
        assert "422" in result.stdout

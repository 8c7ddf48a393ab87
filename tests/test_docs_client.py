"""Tests for the documentation HTTP client."""

from unittest.mock import MagicMock

import pytest
import requests

from contextscan.docs_client import DocumentationGenerator
from contextscan.errors import DocumentationError


def _client(**kwargs):
    session = MagicMock()
    return DocumentationGenerator(endpoint="http://docs.test/api", api_key="k", session=session, **kwargs), session


class TestAvailability:
    """Tests for the reachability check."""

    @pytest.mark.parametrize("status, expected", [(200, True), (405, True), (503, False)])
    def test_status_codes(self, status: int, expected: bool):
        client, session = _client()
        session.get.return_value = MagicMock(status_code=status)
        assert client.is_available() is expected

    def test_connection_error(self):
        client, session = _client()
        session.get.side_effect = requests.ConnectionError("refused")
        assert client.is_available() is False


class TestGenerate:
    """Tests for generate()."""

    def test_posts_payload_and_returns_markdown(self):
        client, session = _client()
        session.post.return_value.json.return_value = {
            "markdown": "# Shop\n", "generatedAtUtc": "2024-05-01T12:00:00.000Z",
        }
        doc = client.generate("workflow", "{}", "sample-shop")

        assert doc.markdown == "# Shop\n"
        assert doc.generated_at_utc == "2024-05-01T12:00:00.000Z"
        _, kwargs = session.post.call_args
        assert kwargs["json"] == {"type": "workflows", "content": "{}", "projectName": "sample-shop"}
        assert kwargs["headers"]["Authorization"] == "Bearer k"

    def test_timeout(self):
        client, session = _client()
        session.post.side_effect = requests.Timeout()
        with pytest.raises(DocumentationError, match="timed out"):
            client.generate("summary", "{}", "p")

    def test_http_error(self):
        client, session = _client()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        with pytest.raises(DocumentationError, match="failed"):
            client.generate("summary", "{}", "p")

    def test_empty_markdown(self):
        client, session = _client()
        session.post.return_value.json.return_value = {"markdown": "  "}
        with pytest.raises(DocumentationError, match="no markdown"):
            client.generate("summary", "{}", "p")

    def test_unsupported_kind(self):
        client, session = _client()
        with pytest.raises(DocumentationError):
            client.generate("directory", "{}", "p")
        session.post.assert_not_called()

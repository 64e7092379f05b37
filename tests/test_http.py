"""Tests for the GitHub and chat webhook clients."""

import json

import httpx
import pytest

from trellis.errors import MessagingError, ReviewRequestError
from trellis.github import PULL_REQUEST_DESCRIPTION, create_pull_request, strip_comments
from trellis.messaging import Messenger


def _client(handler) -> httpx.Client:
    """Create an httpx client over a mock transport."""
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestCreatePullRequest:
    def test_posts_pull_request(self) -> None:
        """Test the request sent to GitHub and the returned URL."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"html_url": "http://github.com/repo/project/pulls/1"})

        url = create_pull_request("secret", "FOO", "acme/widgets", "testing", client=_client(handler))

        assert url == "http://github.com/repo/project/pulls/1"
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.github.com/repos/acme/widgets/pulls"
        assert request.headers["Authorization"] == "token secret"
        assert json.loads(request.content) == {"title": "FOO", "head": "FOO", "base": "master", "body": "testing"}

    def test_non_2xx_raises(self) -> None:
        """Test that GitHub errors surface as ReviewRequestError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"message": "Validation Failed"})

        with pytest.raises(ReviewRequestError, match="HTTP 422") as excinfo:
            create_pull_request("secret", "FOO", "acme/widgets", "testing", client=_client(handler))
        assert excinfo.value.status_code == 422

    def test_missing_url_raises(self) -> None:
        """Test that a response without a URL is rejected."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"number": 1})

        with pytest.raises(ReviewRequestError, match="html_url"):
            create_pull_request("secret", "FOO", "acme/widgets", "testing", client=_client(handler))

    def test_redirect_raises(self) -> None:
        """Test that a redirect is not mistaken for a created pull request."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "https://proxy.test/login"})

        with pytest.raises(ReviewRequestError, match="HTTP 302") as excinfo:
            create_pull_request("secret", "FOO", "acme/widgets", "testing", client=_client(handler))
        assert excinfo.value.status_code == 302

    def test_non_json_body_raises(self) -> None:
        """Test that an HTML page answered with 200 is rejected."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>proxy login</html>")

        with pytest.raises(ReviewRequestError, match="not JSON"):
            create_pull_request("secret", "FOO", "acme/widgets", "testing", client=_client(handler))


def test_strip_comments() -> None:
    """Test that template comments are removed from an edited description."""
    assert strip_comments("Fix login\n" + PULL_REQUEST_DESCRIPTION) == "Fix login"
    assert strip_comments(PULL_REQUEST_DESCRIPTION) == ""


class TestMessenger:
    def test_posts_json(self) -> None:
        """Test the webhook payload."""
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200)

        messenger = Messenger("http://chat.test/hook", client=_client(handler))
        assert messenger.post("#worklog hello", url="http://pr", message_type="review_request")
        assert messenger.post("#worklog plain")
        assert bodies == [
            {"text": "#worklog hello", "url": "http://pr", "message_type": "review_request"},
            {"text": "#worklog plain"},
        ]

    def test_quiet_is_noop(self) -> None:
        """Test that quiet mode never calls the webhook."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("webhook called in quiet mode")

        messenger = Messenger("http://chat.test/hook", quiet=True, client=_client(handler))
        assert not messenger.post("#worklog hello")

    def test_without_webhook_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a missing webhook only logs the message."""
        messenger = Messenger(None)
        with caplog.at_level("INFO", logger="trellis.messaging"):
            assert not messenger.post("#worklog hello")
        assert "No webhook configured" in caplog.text
        assert "#worklog hello" in caplog.text

    def test_non_2xx_raises(self) -> None:
        """Test that webhook errors surface as MessagingError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        messenger = Messenger("http://chat.test/hook", client=_client(handler))
        with pytest.raises(MessagingError, match="HTTP 500"):
            messenger.post("#worklog hello")

    def test_redirect_raises(self) -> None:
        """Test that a redirect from the webhook is not treated as delivered."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(301, headers={"Location": "https://chat.test/new-hook"})

        messenger = Messenger("http://chat.test/hook", client=_client(handler))
        with pytest.raises(MessagingError, match="HTTP 301"):
            messenger.post("#worklog hello")

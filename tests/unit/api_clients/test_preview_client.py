"""Tests for PreviewClient against the in-process Netlify mock."""

import pytest

from netlify_published_date.api_clients import ServerError
from netlify_published_date.exceptions import PreviewFetchError

from tests.infrastructure.netlify_mock_server import Redirect


class TestPreviewFetch:
    """Preview pages: bodies, 404s and redirect chains."""

    @pytest.mark.asyncio
    async def test_fetches_body_without_credentials(self, netlify, preview_client):
        netlify.add_deploy("d1", "aaa1", days=1, pages={"index.html": b"<h1>Home</h1>"})
        url = netlify.deploy_url("d1", "index.html")

        response = await preview_client.fetch(url)

        assert response.body == b"<h1>Home</h1>"
        assert not response.not_found
        assert response.fetched_urls == [url]
        assert netlify.preview_requests()[0].authorization is None

    @pytest.mark.asyncio
    async def test_binary_body_is_preserved(self, netlify, preview_client):
        body = bytes(range(256))
        netlify.add_deploy("d1", "aaa1", days=1, pages={"logo.png": body})

        response = await preview_client.fetch(netlify.deploy_url("d1", "logo.png"))

        assert response.body == body

    @pytest.mark.asyncio
    async def test_not_found_is_not_an_error(self, netlify, preview_client):
        netlify.add_deploy("d1", "aaa1", days=1)

        response = await preview_client.fetch(netlify.deploy_url("d1", "missing.html"))

        assert response.not_found
        assert response.body is None

    @pytest.mark.asyncio
    async def test_redirect_chain_is_recorded(self, netlify, preview_client):
        netlify.add_deploy(
            "d1",
            "aaa1",
            days=1,
            pages={
                "old.html": Redirect("/middle.html"),
                "middle.html": Redirect("/new.html", status_code=302),
                "new.html": b"moved",
            },
        )
        url = netlify.deploy_url("d1", "old.html")

        response = await preview_client.fetch(url)

        assert response.body == b"moved"
        assert response.fetched_urls == [
            url,
            netlify.deploy_url("d1", "middle.html"),
            netlify.deploy_url("d1", "new.html"),
        ]

    @pytest.mark.asyncio
    async def test_client_error_is_fatal(self, netlify, preview_client):
        netlify.add_deploy("d1", "aaa1", days=1, pages={"index.html": b"x"})
        netlify.preview_status["/index.html"] = 403

        with pytest.raises(PreviewFetchError) as exc_info:
            await preview_client.fetch(netlify.deploy_url("d1", "index.html"))

        assert exc_info.value.status_code == 403
        assert "Fetching preview page on Netlify failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error_is_fatal(self, netlify, preview_client):
        netlify.add_deploy("d1", "aaa1", days=1, pages={"index.html": b"x"})
        netlify.preview_status["/index.html"] = 503

        with pytest.raises(ServerError):
            await preview_client.fetch(netlify.deploy_url("d1", "index.html"))

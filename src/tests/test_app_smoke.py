"""End-to-end smoke tests for the GitWiki application.

Builds the app around a fresh git repository in a temp directory and
exercises every route: list, view, edit, save.
"""

import pytest
import pytest_asyncio
from git import Repo
from httpx import ASGITransport, AsyncClient

from gitwiki.config import Settings
from gitwiki.main import create_app


@pytest.fixture()
def wiki_dir(tmp_path):
    Repo.init(tmp_path)
    return tmp_path


@pytest.fixture()
def wiki_app(wiki_dir):
    """A fresh app instance bound to the temp repository."""
    return create_app(Settings(repo_path=wiki_dir))


@pytest_asyncio.fixture()
async def client(wiki_app):
    """Async HTTP client wired to the app."""
    transport = ASGITransport(app=wiki_app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as c:
        yield c


@pytest_asyncio.fixture()
async def client_no_redirect(wiki_app):
    """Async HTTP client that does NOT follow redirects."""
    transport = ASGITransport(app=wiki_app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
    ) as c:
        yield c


def last_commit_message(wiki_dir) -> str:
    return Repo(wiki_dir).head.commit.message


# ============================================================
# Startup
# ============================================================


class TestStartup:
    def test_missing_repository_aborts(self, tmp_path):
        missing = tmp_path / "nowhere"
        with pytest.raises(SystemExit) as excinfo:
            create_app(Settings(repo_path=missing))
        assert str(missing) in str(excinfo.value.code)

    def test_repository_is_injected(self, wiki_app, wiki_dir):
        assert wiki_app.state.repository.backend.root == wiki_dir


# ============================================================
# Navigation
# ============================================================


class TestNavigation:
    @pytest.mark.asyncio
    async def test_root_redirects_to_homepage(self, client_no_redirect):
        resp = await client_no_redirect.get("/")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/Home"

    @pytest.mark.asyncio
    async def test_view_nonexistent_redirects_to_edit(self, client_no_redirect):
        resp = await client_no_redirect.get("/DoesNotExist")
        assert resp.status_code == 302
        assert resp.headers["location"] == "/e/DoesNotExist"

    @pytest.mark.asyncio
    async def test_stylesheet(self, client):
        resp = await client.get("/_static/style.css")
        assert resp.status_code == 200
        assert "a.unknown" in resp.text


# ============================================================
# Listing
# ============================================================


class TestPageList:
    @pytest.mark.asyncio
    async def test_empty_wiki(self, client):
        resp = await client.get("/_list")
        assert resp.status_code == 200
        assert "No pages found." in resp.text

    @pytest.mark.asyncio
    async def test_list_shows_titleized_pages(self, client):
        await client.post("/e/AlphaPage", data={"body": "a"})
        await client.post("/e/BetaPage", data={"body": "b"})

        resp = await client.get("/_list")
        assert resp.status_code == 200
        assert "Alpha Page" in resp.text
        assert 'href="/BetaPage"' in resp.text
        assert resp.text.index("Alpha Page") < resp.text.index("Beta Page")


# ============================================================
# Editing and saving
# ============================================================


class TestPageEdit:
    @pytest.mark.asyncio
    async def test_edit_form_for_new_page(self, client):
        resp = await client.get("/e/BrandNew")
        assert resp.status_code == 200
        assert "Creating Brand New" in resp.text
        assert "<textarea" in resp.text

    @pytest.mark.asyncio
    async def test_edit_form_for_existing_page(self, client):
        await client.post("/e/EditMe", data={"body": "original <text>"})
        resp = await client.get("/e/EditMe")
        assert resp.status_code == 200
        assert "Editing Edit Me" in resp.text
        assert "original &lt;text&gt;" in resp.text

    @pytest.mark.asyncio
    async def test_save_redirects_to_page(self, client_no_redirect, wiki_dir):
        resp = await client_no_redirect.post("/e/HelloWorld", data={"body": "Hi"})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/HelloWorld"
        assert last_commit_message(wiki_dir) == "Created HelloWorld"

    @pytest.mark.asyncio
    async def test_update_commit_message(self, client, wiki_dir):
        await client.post("/e/HelloWorld", data={"body": "v1"})
        await client.post("/e/HelloWorld", data={"body": "v2"})
        assert last_commit_message(wiki_dir) == "Updated HelloWorld"

        resp = await client.get("/HelloWorld")
        assert "v2" in resp.text

    @pytest.mark.asyncio
    async def test_unchanged_save_adds_no_commit(self, client, wiki_dir):
        await client.post("/e/HelloWorld", data={"body": "same"})
        await client.post("/e/HelloWorld", data={"body": "same"})
        assert len(list(Repo(wiki_dir).iter_commits())) == 1


# ============================================================
# Viewing
# ============================================================


class TestPageView:
    @pytest.mark.asyncio
    async def test_view_renders_markup(self, client):
        await client.post("/e/FrontPage", data={"body": "**bold**\nnext line"})
        resp = await client.get("/FrontPage")
        assert resp.status_code == 200
        assert "Front Page" in resp.text
        assert "<strong>bold</strong><br>" in resp.text

    @pytest.mark.asyncio
    async def test_wiki_links_reflect_existence(self, client):
        await client.post("/e/TargetPage", data={"body": "target"})
        await client.post("/e/SourcePage", data={"body": "TargetPage and MissingPage"})

        resp = await client.get("/SourcePage")
        assert '<a class="exists" href="/TargetPage">Target Page</a>' in resp.text
        assert '<a class="unknown" href="/MissingPage">Missing Page</a>' in resp.text

    @pytest.mark.asyncio
    async def test_url_links(self, client):
        await client.post("/e/LinkPage", data={"body": "See <https://example.com>"})
        resp = await client.get("/LinkPage")
        assert '<a href="https://example.com">https://example.com</a>' in resp.text

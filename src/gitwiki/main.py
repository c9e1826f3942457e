"""GitWiki FastAPI application."""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from gitwiki.config import Settings
from gitwiki.core.backend import GitBackend
from gitwiki.core.errors import RepositoryUnavailable
from gitwiki.core.models import PageMissing
from gitwiki.core.parser import RenderingPipeline, titleize
from gitwiki.core.repository import PageRepository

logger = logging.getLogger(__name__)

# Setup templates and static files
templates_path = Path(__file__).parent / "templates"
static_path = Path(__file__).parent / "static"

templates = Jinja2Templates(directory=str(templates_path))
templates.env.filters["titleize"] = titleize

router = APIRouter()


def open_backend(settings: Settings) -> GitBackend:
    """Open the wiki repository, aborting the process if it is unusable."""
    try:
        return GitBackend(
            settings.repo_path,
            author_name=settings.commit_author_name,
            author_email=settings.commit_author_email,
        )
    except RepositoryUnavailable as e:
        logger.critical("Cannot open wiki repository: %s", e)
        raise SystemExit(
            f"{e.path}: {e.reason}. Create it with `git init {e.path}`"
        ) from e


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application around one repository instance."""
    settings = settings or Settings()
    backend = open_backend(settings)
    repository = PageRepository(backend, extension=settings.page_extension)

    app = FastAPI(title=settings.app_title, debug=settings.debug)
    app.state.settings = settings
    app.state.repository = repository
    app.state.pipeline = RenderingPipeline(
        repository, resolve_links_once=settings.resolve_links_once
    )
    app.mount("/_static", StaticFiles(directory=str(static_path)), name="static")
    app.include_router(router)
    return app


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> PageRepository:
    return request.app.state.repository


def get_pipeline(request: Request) -> RenderingPipeline:
    return request.app.state.pipeline


# Template context helper
def get_context(settings: Settings, **kwargs) -> dict:
    """Create base context for templates."""
    return {
        "app_title": settings.app_title,
        "homepage": settings.homepage,
        **kwargs,
    }


@router.get("/")
def index(settings: Settings = Depends(get_settings)):
    """Redirect to the home page."""
    return RedirectResponse(url=f"/{settings.homepage}", status_code=302)


@router.get("/_list", response_class=HTMLResponse)
def list_pages(
    request: Request,
    settings: Settings = Depends(get_settings),
    repository: PageRepository = Depends(get_repository),
):
    """List all pages."""
    pages = repository.find_all()
    return templates.TemplateResponse(
        request, "list.html", get_context(settings, pages=pages)
    )


@router.get("/e/{name}", response_class=HTMLResponse)
def edit_page(
    request: Request,
    name: str,
    settings: Settings = Depends(get_settings),
    repository: PageRepository = Depends(get_repository),
):
    """Edit page form. Unknown names get an empty form."""
    page = repository.find_or_create(name)
    return templates.TemplateResponse(
        request, "edit.html", get_context(settings, page=page)
    )


@router.post("/e/{name}")
def save_page(
    name: str,
    body: str = Form(""),
    repository: PageRepository = Depends(get_repository),
):
    """Save page content and show the result."""
    page = repository.find_or_create(name)
    page.save(body)
    return RedirectResponse(url=f"/{page}", status_code=302)


@router.get("/{name}", response_class=HTMLResponse)
def view_page(
    request: Request,
    name: str,
    settings: Settings = Depends(get_settings),
    repository: PageRepository = Depends(get_repository),
    pipeline: RenderingPipeline = Depends(get_pipeline),
):
    """View a wiki page."""
    result = repository.lookup(name)
    if isinstance(result, PageMissing):
        # Page doesn't exist - redirect to edit to create it
        return RedirectResponse(url=f"/e/{result.name}", status_code=302)

    html_content = pipeline.render_page(result.page)
    return templates.TemplateResponse(
        request,
        "show.html",
        get_context(settings, page=result.page, html_content=html_content),
    )


def run() -> None:
    """Console entry point: serve the wiki with uvicorn."""
    import uvicorn

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)

"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, File, Form, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import (
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    RedirectResponse,
)

from frame_gallery.api.models import ErrorResponse, SavePortfoliosRequest
from frame_gallery.app_logging import configure_logging
from frame_gallery.containers import AppContainer
from frame_gallery.domain.errors import ValidationError
from frame_gallery.services.sharing import (
    app_portfolio_url,
    is_social_crawler,
    render_share_page,
)


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
            for error in exc.errors()
        ]
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid request", details)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/test")
    async def api_test(request: Request) -> dict[str, str]:
        """Confirm that the API functions are reachable."""
        return {
            "message": "Test endpoint working",
            "method": request.method,
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }

    @app.get("/api/portfolios", response_model=None)
    async def list_portfolios(
        request: Request, user_id: str | None = Query(default=None, alias="userId")
    ) -> dict[str, object] | JSONResponse:
        """Return the stored portfolio collection for a user."""
        if not user_id:
            return _error(status.HTTP_400_BAD_REQUEST, "User ID required")
        state_container: AppContainer = request.app.state.container
        try:
            portfolios = state_container.portfolio_service.list_portfolios(user_id)
        except Exception as exc:
            logger.exception("Failed to fetch portfolios", extra={"user_id": user_id})
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to fetch portfolios",
                str(exc),
            )
        return {"success": True, "portfolios": portfolios, "count": len(portfolios)}

    @app.post("/api/portfolios", response_model=None)
    async def save_portfolios(
        body: SavePortfoliosRequest, request: Request
    ) -> dict[str, object] | JSONResponse:
        """Replace a user's whole portfolio collection."""
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.portfolio_service.save_portfolios(
                body.user_id, body.portfolios
            )
        except Exception as exc:
            logger.exception(
                "Failed to save portfolios", extra={"user_id": body.user_id}
            )
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to save portfolios",
                str(exc),
            )
        return {"success": True, "saved": outcome.saved, "metadata": outcome.metadata}

    @app.delete("/api/portfolios", response_model=None)
    async def delete_portfolio(
        request: Request,
        user_id: str | None = Query(default=None, alias="userId"),
        portfolio_id: str | None = Query(default=None, alias="portfolioId"),
    ) -> dict[str, object] | JSONResponse:
        """Remove one portfolio from a user's collection."""
        if not user_id or not portfolio_id:
            return _error(
                status.HTTP_400_BAD_REQUEST, "User ID and portfolio ID required"
            )
        state_container: AppContainer = request.app.state.container
        try:
            outcome = state_container.portfolio_service.delete_portfolio(
                user_id, portfolio_id
            )
        except Exception as exc:
            logger.exception(
                "Failed to delete portfolio",
                extra={"user_id": user_id, "portfolio_id": portfolio_id},
            )
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to delete portfolio",
                str(exc),
            )
        return {
            "success": True,
            "deleted": outcome.deleted,
            "remaining": outcome.remaining,
        }

    @app.get("/api/portfolio/{user_id}/{portfolio_id}", response_model=None)
    async def public_portfolio(
        user_id: str, portfolio_id: str, request: Request
    ) -> dict[str, object] | JSONResponse:
        """Return one portfolio for public viewing."""
        state_container: AppContainer = request.app.state.container
        try:
            public = state_container.portfolio_service.get_public_portfolio(
                user_id, portfolio_id
            )
        except Exception as exc:
            logger.exception(
                "Failed to fetch public portfolio",
                extra={"user_id": user_id, "portfolio_id": portfolio_id},
            )
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to fetch portfolio",
                str(exc),
            )
        if public is None:
            return _error(status.HTTP_404_NOT_FOUND, "Portfolio not found")
        logger.info(
            "Public portfolio viewed",
            extra={"user_id": user_id, "portfolio_id": portfolio_id},
        )
        return {"success": True, "portfolio": public.portfolio, "views": public.views}

    @app.post("/api/upload-image", response_model=None)
    async def upload_image(
        request: Request,
        file: UploadFile | None = File(default=None),
        user_id: str = Form(default="anonymous", alias="userId"),
    ) -> dict[str, object] | JSONResponse:
        """Store one uploaded image and return its public URL."""
        if file is None:
            return _error(status.HTTP_400_BAD_REQUEST, "No file provided")
        state_container: AppContainer = request.app.state.container
        content = await file.read()
        try:
            receipt = state_container.upload_service.upload(
                user_id=user_id or "anonymous",
                original_name=file.filename,
                content=content,
                content_type=file.content_type,
            )
        except ValidationError as exc:
            return _error(status.HTTP_400_BAD_REQUEST, str(exc))
        except Exception as exc:
            logger.exception("Image upload failed", extra={"user_id": user_id})
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to upload image",
                str(exc),
            )
        return {
            "success": True,
            "url": receipt.url,
            "filename": receipt.filename,
            "size": receipt.size,
            "uploadedAt": receipt.uploaded_at.isoformat(),
        }

    @app.get("/api/share/{user_id}/{portfolio_id}", response_model=None)
    async def share_portfolio(
        user_id: str, portfolio_id: str, request: Request
    ) -> HTMLResponse | PlainTextResponse | RedirectResponse:
        """Serve link previews to crawlers and send people to the app."""
        state_container: AppContainer = request.app.state.container
        settings = state_container.settings
        app_url = app_portfolio_url(settings.public_base_url, user_id, portfolio_id)
        if not is_social_crawler(request.headers.get("user-agent")):
            return RedirectResponse(app_url, status_code=status.HTTP_302_FOUND)
        try:
            portfolio = state_container.portfolio_service.find_portfolio(
                user_id, portfolio_id
            )
        except Exception:
            logger.exception(
                "Failed to render share page",
                extra={"user_id": user_id, "portfolio_id": portfolio_id},
            )
            return RedirectResponse(
                settings.public_base_url, status_code=status.HTTP_302_FOUND
            )
        if portfolio is None:
            return PlainTextResponse(
                "Portfolio not found", status_code=status.HTTP_404_NOT_FOUND
            )
        html = render_share_page(
            portfolio, app_url=app_url, default_image=settings.default_preview_image
        )
        return HTMLResponse(
            html, headers={"Cache-Control": "public, max-age=3600, s-maxage=3600"}
        )

    return app


def _error(status_code: int, message: str, details: object | None = None) -> JSONResponse:
    payload = ErrorResponse(error=message, details=details)
    return JSONResponse(
        payload.model_dump(exclude_none=True), status_code=status_code
    )

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from adapters.entry.http.candles_router import dev_router, router as candles_router
from config.settings import settings
from core.domain.errors import InvalidInputError
from workers.feed_supervisor import FeedSupervisor


def _setup_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(supervisor: Optional[FeedSupervisor] = None) -> FastAPI:
    """
    Build the FastAPI app around a supervisor (a fresh one unless injected, e.g. by tests).
    """
    sup = supervisor or FeedSupervisor(config=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _setup_logging()
        logging.getLogger(__name__).info("Starting %s (lifespan startup)...", settings.APP_NAME)

        await sup.start()
        try:
            yield
        finally:
            logging.getLogger(__name__).info("Shutting down %s (lifespan shutdown)...", settings.APP_NAME)
            await sup.stop()

    app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
    app.state.supervisor = sup

    app.include_router(candles_router)
    if sup.settings.ENABLE_DEV_ROUTES:
        app.include_router(dev_router)

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)

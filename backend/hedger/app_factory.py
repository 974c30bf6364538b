from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import AUTOSTART
from .logging_utils import setup_logger
from .state import manager
from .routes.status_routes import router as status_router
from .routes.candle_routes import router as candle_router
from .routes.trading_routes import router as trading_router

logger = setup_logger("hedger")


def create_app() -> FastAPI:
    app = FastAPI(title="EMA Hedger")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    # routes
    app.include_router(status_router)
    app.include_router(candle_router)
    app.include_router(trading_router)

    @app.on_event("startup")
    async def on_startup():
        if AUTOSTART:
            try:
                await manager.start()
            except Exception:
                logger.exception("autostart failed, trading stays stopped")

    @app.on_event("shutdown")
    async def on_shutdown():
        if manager.is_trading:
            await manager.stop()

    return app

from fastapi import FastAPI
import uvicorn

from chatstream.controller.auth import router as auth_router
from chatstream.controller.conversation import router as conv_router
from chatstream.controller.message import router as message_router
from chatstream.core.config import settings
from chatstream.core.db import create_all
from chatstream.core.errors import register_exception_handlers
from chatstream.core.logging import RequestLoggingMiddleware, setup_logging

setup_logging(settings.log_level)

app = FastAPI(title="chatstream")
app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)


@app.on_event("startup")
async def _create_all():
    await create_all()


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(conv_router)
app.include_router(message_router)


def run() -> None:
    uvicorn.run(
        "chatstream.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.is_local and settings.debug,
    )


if __name__ == "__main__":
    run()

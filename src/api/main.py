"""
FastAPI application for the science assistant API.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .deps import build_assistant
from .routes import router

HISTORY_SWEEP_SECONDS = 60


async def _sweep_histories(app: FastAPI) -> None:
    while True:
        await asyncio.sleep(HISTORY_SWEEP_SECONDS)
        assistant = getattr(app.state, "assistant", None)
        if assistant is not None:
            await asyncio.to_thread(assistant.history.sweep)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the assistant on startup and expire idle histories in the background."""
    app.state.assistant = build_assistant()
    sweeper = asyncio.create_task(_sweep_histories(app))
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    app.state.assistant.cancel_pending()


app = FastAPI(
    title="Science Textbook Assistant API",
    description="Question answering over a science textbook PDF",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(router)

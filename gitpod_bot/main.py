from gitpod_bot import settings  # load .env
from fastapi import FastAPI, Request, Header, HTTPException
from contextlib import asynccontextmanager
import asyncio

from gitpod_bot.cache.redis_client import check_redis
from gitpod_bot.security.webhook_verify import verify_signature
from gitpod_bot.github.events import handle_event, handle_schedule, scheduler, stats
from gitpod_bot.logger import get_logger
from gitpod_bot.workers.scheduler import reconcile_on_startup, scheduler_loop


logger = get_logger()

_scheduler_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _scheduler_task

    settings.validate_github_settings()

    await reconcile_on_startup(scheduler)

    _scheduler_task = asyncio.create_task(scheduler_loop(handle_schedule))
    logger.info("Repository scheduler started")

    try:
        yield
    finally:
        if _scheduler_task:
            _scheduler_task.cancel()
            try:
                await _scheduler_task
            except asyncio.CancelledError:
                pass
            logger.info("Repository scheduler stopped")


app = FastAPI(title="gitpod-bot", lifespan=lifespan)


@app.post("/webhook")
async def github_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(None),
    x_github_event: str | None = Header(None),
):
    body = await request.body()

    if not x_hub_signature_256:
        raise HTTPException(status_code=401, detail="Missing signature header")

    if not verify_signature(body, x_hub_signature_256, settings.GITHUB_WEBHOOK_SECRET):
        raise HTTPException(status_code=401, detail="Invalid signature")

    if not x_github_event:
        raise HTTPException(status_code=400, detail="Missing GitHub event header")

    payload = await request.json()
    logger.info("Received GitHub event: %s", x_github_event)

    await handle_event(x_github_event, payload)
    return {"status": "ok"}


@app.get("/stats")
async def get_stats():
    return {"repositories": stats.snapshot()}


@app.get("/health")
async def health():
    return {"status": "ok", "redis": check_redis()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gitpod_bot.main:app",
        host="0.0.0.0",
        port=8000,
    )

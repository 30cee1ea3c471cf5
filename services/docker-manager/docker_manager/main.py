import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from docker_manager.config import JOIN_MEET_QUEUE, LOG_LEVEL, PORT, REDIS_URL
from docker_manager.listener import QueueListener
from docker_manager.orchestrator_utils import DockerRecorderLauncher
from docker_manager.queue_client import JoinMeetQueue

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("docker_manager")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up Docker Manager...")
    queue = JoinMeetQueue(REDIS_URL, JOIN_MEET_QUEUE)
    launcher = DockerRecorderLauncher()

    try:
        await queue.connect()
    except Exception as e:
        # The listener keeps polling through an outage, so this is not fatal
        logger.error(f"Failed to connect to Redis on startup: {e}", exc_info=True)

    try:
        await asyncio.to_thread(launcher.connect)
    except Exception as e:
        logger.error(f"Failed to initialize Docker client on startup: {e}", exc_info=True)

    listener = QueueListener(queue, launcher)
    listener_task = asyncio.create_task(listener.run())
    app.state.queue = queue
    app.state.listener = listener

    try:
        yield
    finally:
        logger.info("Shutting down Docker Manager...")
        # The loop sees the flag within one poll timeout, or after the job in hand
        listener.stop()
        try:
            await listener_task
        except Exception as e:
            logger.error(f"Queue listener exited with error: {e}", exc_info=True)

        launcher.close()
        try:
            await queue.close()
            logger.info("Redis connection closed.")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}", exc_info=True)


app = FastAPI(title="Shadow Docker Manager", lifespan=lifespan)


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "Shadow Docker Manager is running"}


@app.get("/health")
async def health():
    queue: JoinMeetQueue = app.state.queue
    listener: QueueListener = app.state.listener

    redis_ok = await queue.ping()
    queue_length = None
    if redis_ok:
        try:
            queue_length = await queue.length()
        except Exception as e:
            logger.warning(f"Could not read length of '{queue.name}': {e}")

    stats = listener.statistics()
    return {
        "status": "ok" if redis_ok and stats["is_running"] else "degraded",
        "redis": redis_ok,
        "queue_length": queue_length,
        "listener": stats,
    }


if __name__ == "__main__":
    uvicorn.run(
        "docker_manager.main:app",
        host="0.0.0.0",
        port=PORT,
    )

import os

# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

# Producers (the HTTP API) RPUSH onto this list; we BLPOP from it
JOIN_MEET_QUEUE = os.environ.get("JOIN_MEET_QUEUE", "join_meet_queue")

# ---------------------------------------------------------------------------
# Docker
# ---------------------------------------------------------------------------

DOCKER_HOST = os.environ.get("DOCKER_HOST", "unix://var/run/docker.sock")
DOCKER_NETWORK = os.environ.get("DOCKER_NETWORK", "shadow_default")
RECORDER_IMAGE_NAME = os.environ.get("RECORDER_IMAGE_NAME", "shadow-recorder:latest")

# Named volume (or host path) the recorder writes into. Unset means no bind.
RECORDINGS_VOLUME = os.environ.get("RECORDINGS_VOLUME") or None
RECORDINGS_MOUNT_PATH = os.environ.get("RECORDINGS_MOUNT_PATH", "/recordings")

# Used when a job does not carry maxDurationMins
DEFAULT_MAX_DURATION_MINS = int(os.environ.get("DEFAULT_MAX_DURATION_MINS", "60"))

# ---------------------------------------------------------------------------
# Listener retry policy
# ---------------------------------------------------------------------------

MAX_LAUNCH_ATTEMPTS = int(os.environ.get("MAX_LAUNCH_ATTEMPTS", "3"))
LAUNCH_RETRY_DELAY_SECONDS = float(os.environ.get("LAUNCH_RETRY_DELAY_SECONDS", "1.0"))
QUEUE_ERROR_PAUSE_SECONDS = float(os.environ.get("QUEUE_ERROR_PAUSE_SECONDS", "1.0"))

# Longest a single BLPOP blocks before the listener re-checks for shutdown.
# A timed-out BLPOP consumes nothing, so the wait as a whole is still indefinite.
QUEUE_POLL_TIMEOUT_SECONDS = float(os.environ.get("QUEUE_POLL_TIMEOUT_SECONDS", "2.0"))

# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PORT = int(os.environ.get("PORT", "8080"))

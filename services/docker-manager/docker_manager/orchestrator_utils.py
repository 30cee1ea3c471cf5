import json
import logging
import math
import os
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import requests_unixsocket
from requests.exceptions import ConnectionError, HTTPError, RequestException

from docker_manager.config import (
    DEFAULT_MAX_DURATION_MINS,
    DOCKER_HOST,
    DOCKER_NETWORK,
    LOG_LEVEL,
    RECORDER_IMAGE_NAME,
    RECORDINGS_MOUNT_PATH,
    RECORDINGS_VOLUME,
)
from docker_manager.schemas import JoinMeetingPayload

logger = logging.getLogger("docker_manager.orchestrator_utils")


class DockerConnectionError(Exception):
    pass


class RecorderLaunchError(Exception):
    pass


def socket_path(docker_host: str) -> str:
    # Both unix://var/run/docker.sock and unix:///var/run/docker.sock mean the absolute path
    return f"/{docker_host.split('//', 1)[1].lstrip('/')}"


def socket_url_base(docker_host: str) -> str:
    """Turn unix:///var/run/docker.sock into the http+unix:// base URL requests_unixsocket expects."""
    return f"http+unix://{socket_path(docker_host).replace('/', '%2F')}"


class DockerRecorderLauncher:
    """Starts shadow-recorder containers through the Docker Engine API on the unix socket."""

    def __init__(
        self,
        docker_host: str = DOCKER_HOST,
        network: str = DOCKER_NETWORK,
        image: str = RECORDER_IMAGE_NAME,
        recordings_volume: Optional[str] = RECORDINGS_VOLUME,
        recordings_mount_path: str = RECORDINGS_MOUNT_PATH,
        default_max_duration_mins: int = DEFAULT_MAX_DURATION_MINS,
        session_factory: Callable[[], Any] = requests_unixsocket.Session,
        check_socket_file: bool = True,
        connect_retries: int = 3,
        connect_delay: float = 2,
    ):
        self.docker_host = docker_host
        self.network = network
        self.image = image
        self.recordings_volume = recordings_volume
        self.recordings_mount_path = recordings_mount_path
        self.default_max_duration_mins = default_max_duration_mins
        self.socket_path = socket_path(docker_host)
        self.base_url = socket_url_base(docker_host)
        self._session_factory = session_factory
        self._check_socket_file = check_socket_file
        self.connect_retries = connect_retries
        self.connect_delay = connect_delay
        self._session = None

    def connect(self, max_retries: Optional[int] = None, delay: Optional[float] = None):
        """Opens the socket session and checks it with GET /version, retrying while Docker comes up."""
        if self._session is not None:
            return self._session
        max_retries = max_retries or self.connect_retries
        delay = self.connect_delay if delay is None else delay

        logger.info(f"Attempting to initialize requests_unixsocket session for {self.docker_host}...")
        for attempt in range(1, max_retries + 1):
            try:
                if self._check_socket_file and not os.path.exists(self.socket_path):
                    raise FileNotFoundError(f"Docker socket file not found at: {self.socket_path}")

                session = self._session_factory()
                response = session.get(f"{self.base_url}/version")
                response.raise_for_status()
                api_version = response.json().get("ApiVersion")
                logger.info(f"requests_unixsocket session initialized. Docker API version: {api_version}")
                self._session = session
                return session

            except FileNotFoundError as e:
                logger.warning(f"Attempt {attempt}/{max_retries}: {e}. Retrying in {delay}s...")
            except ConnectionError as e:
                logger.warning(f"Attempt {attempt}/{max_retries}: Socket connection error ({e}). Is Docker running? Retrying in {delay}s...")
            except HTTPError as e:
                # 4xx/5xx from the daemon is not going to fix itself in two seconds
                logger.error(f"Attempt {attempt}/{max_retries}: HTTP error communicating with Docker socket: {e}", exc_info=True)
                break
            except Exception as e:
                logger.error(f"Attempt {attempt}/{max_retries}: Failed to initialize requests_unixsocket session: {e}", exc_info=True)

            if attempt < max_retries:
                time.sleep(delay)

        logger.error(f"Failed to connect to Docker socket at {self.docker_host} after {max_retries} attempts.")
        raise DockerConnectionError(f"Could not connect to Docker socket at {self.docker_host}.")

    def close(self) -> None:
        if self._session is None:
            return
        logger.info("Closing requests_unixsocket session.")
        try:
            self._session.close()
        except Exception as e:
            logger.warning(f"Error closing requests_unixsocket session: {e}")
        self._session = None

    def container_name_for(self, job: JoinMeetingPayload) -> str:
        ref = job.recording_id or job.user_id
        safe_ref = "".join(c if c.isalnum() or c in "-_" else "-" for c in ref)[:40]
        return f"shadow-recorder-{safe_ref}-{uuid.uuid4().hex[:8]}"

    def build_create_payload(self, job: JoinMeetingPayload, container_name: str) -> Dict[str, Any]:
        # The recorder takes whole minutes; a partial minute is rounded up
        max_duration = math.ceil(job.max_duration_mins) if job.max_duration_mins else self.default_max_duration_mins

        recorder_config = {
            **job.to_wire(),
            "maxDurationMins": max_duration,
            "containerName": container_name,
        }

        environment: List[str] = [
            f"RECORDER_CONFIG={json.dumps(recorder_config)}",
            f"MEETING_LINK={job.link}",
            f"USER_ID={job.user_id}",
            f"MAX_DURATION_MINS={max_duration}",
            f"LOG_LEVEL={LOG_LEVEL}",
        ]
        if job.recording_id:
            environment.append(f"RECORDING_ID={job.recording_id}")

        host_config: Dict[str, Any] = {
            "NetworkMode": self.network,
            "AutoRemove": True,
        }
        if self.recordings_volume:
            host_config["Binds"] = [f"{self.recordings_volume}:{self.recordings_mount_path}"]

        labels = {"shadow.user_id": job.user_id}
        if job.recording_id:
            labels["shadow.recording_id"] = job.recording_id

        return {
            "Image": self.image,
            "Env": environment,
            "Labels": labels,
            "HostConfig": host_config,
        }

    def start_recorder(self, job: JoinMeetingPayload) -> str:
        """
        Create and start a recorder container for the job.

        Returns:
            The Docker container ID.

        Raises:
            RecorderLaunchError: if the daemon is unreachable or rejects the create/start.
        """
        try:
            session = self.connect()
        except DockerConnectionError as e:
            raise RecorderLaunchError(str(e)) from e

        container_name = self.container_name_for(job)
        create_payload = self.build_create_payload(job, container_name)
        logger.debug(f"Recorder create payload: {json.dumps(create_payload)}")

        try:
            logger.info(f"Creating recorder container '{container_name}' ({self.image}) for user {job.user_id}...")
            response = session.post(f"{self.base_url}/containers/create?name={container_name}", json=create_payload)
            response.raise_for_status()
            container_id = response.json().get("Id")
            if not container_id:
                raise RecorderLaunchError(f"Docker returned no container ID for '{container_name}'")

            logger.info(f"Container {container_id} created. Starting...")
            response = session.post(f"{self.base_url}/containers/{container_id}/start")
            if response.status_code != 204:
                # AutoRemove only kicks in once the container has run, so this one may linger
                raise RecorderLaunchError(
                    f"Failed to start container {container_id}. Status: {response.status_code}, Response: {response.text}"
                )
        except RequestException as e:
            if isinstance(e, ConnectionError):
                # Drop the session so the next attempt re-checks the socket
                self.close()
            raise RecorderLaunchError(f"HTTP error communicating with Docker socket: {e}") from e

        logger.info(f"Successfully started recorder container {container_id} for meeting {job.link}")
        return container_id

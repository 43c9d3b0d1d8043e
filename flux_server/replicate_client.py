"""Replicate API client for Flux models.

Flow:
    1. Shape the model input (pro models take width/height, the others an
       aspect ratio).
    2. Create a prediction with `Prefer: wait` so fast models finish in the
       first response.
    3. Poll the prediction until it succeeds, fails or the timeout expires.
    4. Return the output URLs; `download_image` fetches the bytes.

Every failure is raised as a processing error, except unsupported models
which are a validation error raised before any request is made.
"""

import logging
import time
from typing import Optional

import requests

from flux_server.config import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_TIMEOUT_SECONDS, MODEL_SLUGS
from flux_server.errors import processing_error, validation_error
from flux_server.log import log_event
from flux_server.models import GenerationResult

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.replicate.com/v1"
REQUEST_TIMEOUT = 90  # Prefer: wait holds the connection up to 60s
DOWNLOAD_TIMEOUT = 120

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}

# Models that accept explicit dimensions
DIMENSION_MODELS = {"flux-1.1-pro", "flux-pro"}
MIN_DIMENSION = 256
MAX_DIMENSION = 1440

ASPECT_RATIOS = {
    "flux-schnell": ["1:1", "16:9", "21:9", "3:2", "2:3", "4:5", "5:4", "3:4", "4:3", "9:16", "9:21"],
    "flux-ultra": ["21:9", "16:9", "3:2", "4:3", "5:4", "1:1", "4:5", "3:4", "2:3", "9:16", "9:21"],
}


def snap_dimension(value: int) -> int:
    """Clamp to the range the pro models accept and round to a multiple of 32."""
    value = int(round(value / 32.0)) * 32
    return max(MIN_DIMENSION, min(MAX_DIMENSION, value))


def closest_aspect_ratio(width: int, height: int, choices: list[str]) -> str:
    target = width / height

    def distance(ratio: str) -> float:
        w, h = ratio.split(":")
        return abs(int(w) / int(h) - target)

    return min(choices, key=distance)


def build_model_input(prompt: str, model: str, width: int, height: int) -> dict:
    model_input = {"prompt": prompt, "output_format": "png"}
    if model in DIMENSION_MODELS:
        model_input["width"] = snap_dimension(width)
        model_input["height"] = snap_dimension(height)
    else:
        model_input["aspect_ratio"] = closest_aspect_ratio(width, height, ASPECT_RATIOS[model])
    if model == "flux-schnell":
        model_input["num_outputs"] = 1
    return model_input


def _output_urls(output) -> list[str]:
    if not output:
        return []
    if isinstance(output, str):
        return [output]
    return [url for url in output if isinstance(url, str)]


class ReplicateClient:
    def __init__(
        self,
        api_token: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        session: Optional[requests.Session] = None,
        base_url: str = API_BASE_URL,
    ):
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        })

    def is_model_supported(self, model: str) -> bool:
        return model in MODEL_SLUGS

    def get_available_models(self) -> list[str]:
        return list(MODEL_SLUGS)

    def generate_image(self, prompt: str, model: str, width: int, height: int) -> GenerationResult:
        """Run a prediction and block until it finishes."""
        if not self.is_model_supported(model):
            raise validation_error(
                f"Unsupported model: {model}. Supported models: {', '.join(self.get_available_models())}"
            )

        started = time.monotonic()
        url = f"{self.base_url}/models/{MODEL_SLUGS[model]}/predictions"
        payload = {"input": build_model_input(prompt, model, width, height)}

        prediction = self._request("POST", url, json=payload, headers={"Prefer": "wait"})
        log_event(logger, logging.DEBUG, "Prediction created",
                  id=prediction.get("id"), status=prediction.get("status"), model=model)

        while prediction.get("status") not in TERMINAL_STATUSES:
            if time.monotonic() - started > self.timeout:
                raise processing_error(f"Image generation timed out after {int(self.timeout)}s")
            poll_url = (prediction.get("urls") or {}).get("get")
            if not poll_url:
                raise processing_error("Replicate response did not include a status URL")
            time.sleep(self.poll_interval)
            prediction = self._request("GET", poll_url)
            log_event(logger, logging.DEBUG, "Prediction polled",
                      id=prediction.get("id"), status=prediction.get("status"))

        status = prediction["status"]
        if status != "succeeded":
            reason = prediction.get("error") or status
            raise processing_error(f"Image generation {status}: {reason}")

        return GenerationResult(
            image_urls=_output_urls(prediction.get("output")),
            processing_time_ms=int((time.monotonic() - started) * 1000),
            prediction_id=prediction.get("id"),
        )

    def download_image(self, url: str) -> bytes:
        log_event(logger, logging.DEBUG, "Downloading image", url=url)
        try:
            response = self.session.get(url, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise processing_error(f"Failed to download image: {e}")

        if not response.content:
            raise processing_error("Downloaded image is empty")
        return response.content

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            response = self.session.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise processing_error(f"Replicate request failed: {e}")

        if response.status_code >= 400:
            raise processing_error(
                f"Replicate API error {response.status_code}: {_error_detail(response)}"
            )
        try:
            return response.json()
        except ValueError:
            raise processing_error("Replicate returned an invalid JSON response")


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("title") or body)
    return str(body)

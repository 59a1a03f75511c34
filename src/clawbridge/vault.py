"""Vault upload client with validation gate and bounded retry/backoff."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from clawbridge import __version__
from clawbridge.brief.models import ConnectionBrief
from clawbridge.brief.validator import DEFAULT_MIN_EVIDENCE, validate
from clawbridge.config import PRODUCTION_VAULT_URL
from clawbridge.context import RunContext
from clawbridge.errors import TerminalUploadError, TransientUploadError, UploadValidationError

UPLOAD_PATH = "/api/upload-run"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS: tuple[float, ...] = (1.0, 3.0, 9.0)
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = f"clawbridge-runner/{__version__}"

_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True, slots=True)
class VaultCredentials:
    workspace_id: str
    workspace_key: str = field(repr=False)

    def headers(self) -> dict[str, str]:
        return {
            "X-Workspace-Id": self.workspace_id,
            "X-Workspace-Key": self.workspace_key,
        }


@dataclass(frozen=True, slots=True)
class UploadReceipt:
    run_id: str
    vault_url: str


class VaultUploader:
    """POST briefs to ``<base>/api/upload-run``.

    Retries 5xx, 429 and transport failures up to ``max_attempts`` times,
    sleeping ``backoff_seconds[n]`` after failed attempt ``n``. Any other non-2xx
    is terminal at once.
    """

    def __init__(
        self,
        *,
        base_url: str = PRODUCTION_VAULT_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: tuple[float, ...] = DEFAULT_BACKOFF_SECONDS,
        min_evidence: int = DEFAULT_MIN_EVIDENCE,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff_seconds
        self._min_evidence = min_evidence
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"User-Agent": DEFAULT_USER_AGENT},
            transport=transport,
        )

    def upload(
        self,
        brief: ConnectionBrief,
        credentials: VaultCredentials,
        *,
        ctx: RunContext | None = None,
    ) -> UploadReceipt:
        log = (ctx or RunContext()).for_stage("vault").log

        report = validate(brief, min_evidence=self._min_evidence)
        if not report.valid:
            for issue in report.errors:
                log.error("Validation error %s", issue)
            raise UploadValidationError(
                "Validation failed. Connection brief will not be uploaded.",
                errors=[str(issue) for issue in report.errors],
            )
        log.info("Validation passed")

        url = f"{self._base_url}{UPLOAD_PATH}"
        log.info("Uploading to vault: url=%s workspace_id=%s", url, credentials.workspace_id)
        body = {"run": brief.to_dict()}

        last_status: int | None = None
        last_message = "no attempt made"
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = self._client.post(url, json=body, headers=credentials.headers())
            except httpx.TransportError as error:
                last_status = None
                last_message = str(error) or type(error).__name__
                log.warning(
                    "Vault upload attempt %d failed (network error): %s",
                    attempt,
                    last_message,
                )
            else:
                if response.is_success:
                    return _receipt(response, brief=brief, log=log)

                last_status = response.status_code
                last_message = _error_message(response)
                if _is_terminal(response.status_code):
                    log.error(
                        "Vault upload failed (not retrying): status=%d message=%s",
                        response.status_code,
                        last_message,
                    )
                    raise TerminalUploadError(
                        f"Upload failed: {last_message}",
                        status_code=response.status_code,
                    )
                if response.status_code == _TOO_MANY_REQUESTS:
                    log.warning("Rate limited, will retry after backoff (attempt %d)", attempt)
                log.warning(
                    "Vault upload attempt %d failed: status=%d message=%s",
                    attempt,
                    response.status_code,
                    last_message,
                )

            if attempt < self._max_attempts:
                delay = self._backoff_for(attempt)
                log.info("Retrying in %.0fs...", delay)
                self._sleep(delay)

        log.error("Vault upload failed after %d attempts", self._max_attempts)
        raise TransientUploadError(
            f"Upload failed after {self._max_attempts} attempts: {last_message}",
            status_code=last_status,
            attempts=self._max_attempts,
        )

    def _backoff_for(self, attempt: int) -> float:
        if not self._backoff:
            return 0.0
        return self._backoff[min(attempt - 1, len(self._backoff) - 1)]

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> VaultUploader:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _is_terminal(status_code: int) -> bool:
    return status_code < 500 and status_code != _TOO_MANY_REQUESTS


def _error_message(response: httpx.Response) -> str:
    try:
        payload: Any = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("error", "message"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    text = response.text.strip()
    return text[:200] if text else f"HTTP {response.status_code}"


def _receipt(response: httpx.Response, *, brief: ConnectionBrief, log: Any) -> UploadReceipt:
    try:
        payload: Any = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    receipt = UploadReceipt(
        run_id=str(payload.get("runId") or brief.run_id),
        vault_url=str(payload.get("vaultUrl") or ""),
    )
    log.info("Vault upload successful: run_id=%s vault_url=%s", receipt.run_id, receipt.vault_url)
    return receipt

from __future__ import annotations

import httpx


class IngestError(Exception):
    """
    Base for every failure the pipeline reports to callers.
    `kind` is the stable machine-readable name; `status_code` the HTTP mapping.
    """

    kind = "ingest_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(IngestError):
    kind = "invalid_input"
    status_code = 400


class RateLimited(IngestError):
    kind = "rate_limited"
    status_code = 429


class NotFoundOrPrivate(IngestError):
    kind = "not_found_or_private"
    status_code = 404


class ServiceUnavailable(IngestError):
    kind = "service_unavailable"
    status_code = 503


class DownloadFailed(IngestError):
    kind = "download_failed"
    status_code = 502


class CdnError(IngestError):
    kind = "cdn_error"
    status_code = 502


class CdnNotConfigured(CdnError):
    pass


class ModelUnavailable(IngestError):
    kind = "model_unavailable"
    status_code = 503


class InvalidTransition(IngestError):
    kind = "invalid_transition"
    status_code = 409


def error_for_status(status_code: int, service: str) -> IngestError:
    if status_code == 429:
        return RateLimited(f"{service} rate limit exceeded, try again later")
    if status_code == 404:
        return NotFoundOrPrivate(f"{service} content not found, private or deleted")
    return ServiceUnavailable(f"{service} unavailable (HTTP {status_code})")


def raise_for_upstream_status(resp: httpx.Response, service: str) -> None:
    if resp.is_success:
        return
    raise error_for_status(resp.status_code, service)


def from_transport_error(exc: httpx.HTTPError, service: str) -> IngestError:
    if isinstance(exc, httpx.TimeoutException):
        return ServiceUnavailable(f"{service} timed out")
    return ServiceUnavailable(f"{service} unreachable: {exc}")

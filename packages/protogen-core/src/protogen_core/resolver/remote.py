"""Maven2 repository client over ``file:`` and ``http(s):`` URLs.

This module provides:
- MavenRepositoryClient: fetches files from remote repositories
- Retry of transient transport failures with exponential backoff and jitter
- Optional SHA-1 verification against ``.sha1`` sidecar files
"""

from __future__ import annotations

import hashlib
import threading
from pathlib import Path
from types import TracebackType
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx
import structlog
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from protogen_core.config import RetryConfig
from protogen_core.errors import ArtifactTransferError
from protogen_core.observability import retry_logger
from protogen_core.resolver.coordinates import ProxyDescriptor, RepositoryDescriptor

logger = structlog.get_logger(__name__)

# Statuses meaning "not in this repository"
_MISSING_STATUSES = frozenset({404, 410})

USER_AGENT = "protogen"


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ArtifactTransferError) and exc.transient


class MavenRepositoryClient:
    """Fetches files from Maven2 layout repositories.

    One httpx client is kept per proxy so connections are pooled across
    requests. The client is safe to share between threads.

    Args:
        retry: Retry policy for transient failures.
        timeout_seconds: Per-request timeout.
        verify_checksums: Compare downloads with ``.sha1`` sidecars when present.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in
            tests. When given, proxies are not applied.

    Example:
        >>> with MavenRepositoryClient() as client:
        ...     data = client.fetch(CENTRAL, coordinate.relative_path())
    """

    def __init__(
        self,
        *,
        retry: RetryConfig | None = None,
        timeout_seconds: float = 30.0,
        verify_checksums: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.retry = retry or RetryConfig()
        self.timeout_seconds = timeout_seconds
        self.verify_checksums = verify_checksums
        self._transport = transport
        self._clients: dict[ProxyDescriptor | None, httpx.Client] = {}
        self._lock = threading.Lock()
        self._log = logger.bind(component="maven_repository_client")

    def __enter__(self) -> MavenRepositoryClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()

    def _client(self, proxy: ProxyDescriptor | None) -> httpx.Client:
        with self._lock:
            client = self._clients.get(proxy)
            if client is None:
                if self._transport is not None:
                    client = httpx.Client(
                        transport=self._transport,
                        timeout=self.timeout_seconds,
                        headers={"User-Agent": USER_AGENT},
                    )
                else:
                    client = httpx.Client(
                        proxy=proxy.url if proxy else None,
                        timeout=self.timeout_seconds,
                        follow_redirects=True,
                        trust_env=False,
                        headers={"User-Agent": USER_AGENT},
                    )
                self._clients[proxy] = client
            return client

    def fetch(self, repository: RepositoryDescriptor, relative_path: str) -> bytes | None:
        """Fetch a file from a repository.

        Args:
            repository: Repository to fetch from.
            relative_path: Path in the repository layout.

        Returns:
            File contents, or None if the repository does not have the file.

        Raises:
            ArtifactTransferError: On transport failures (after retries),
                unexpected statuses or checksum mismatches.
        """
        url = repository.artifact_url(relative_path)
        if urlsplit(url).scheme == "file":
            data = self._read_file(url)
            checksum = self._read_file(url + ".sha1") if data is not None else None
        else:
            client = self._client(repository.proxy)
            data = self._get(client, url)
            checksum = None
            if data is not None and self.verify_checksums:
                checksum = self._get(client, url + ".sha1")

        if data is not None and checksum is not None and self.verify_checksums:
            self._verify(url, data, checksum)

        self._log.debug(
            "repository_fetch",
            repository=repository.id,
            url=url,
            found=data is not None,
        )
        return data

    def _read_file(self, url: str) -> bytes | None:
        path = Path(url2pathname(urlsplit(url).path))
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ArtifactTransferError(url, str(e)) from e

    def _get(self, client: httpx.Client, url: str) -> bytes | None:
        for attempt in Retrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.initial_wait_seconds,
                max=self.retry.max_wait_seconds,
                jitter=self.retry.jitter_seconds,
            ),
            before_sleep=retry_logger(url, self.retry.max_attempts),
            reraise=True,
        ):
            with attempt:
                return self._get_once(client, url)

        raise RuntimeError("Unexpected retry state")  # pragma: no cover

    def _get_once(self, client: httpx.Client, url: str) -> bytes | None:
        try:
            response = client.get(url)
        except httpx.TransportError as e:
            raise ArtifactTransferError(url, str(e) or type(e).__name__, transient=True) from e

        status = response.status_code
        if status in _MISSING_STATUSES:
            return None
        if status != 200:
            raise ArtifactTransferError(
                url,
                f"HTTP {status} {response.reason_phrase}",
                status_code=status,
                transient=status >= 500 or status == 429,
            )
        return response.content

    @staticmethod
    def _verify(url: str, data: bytes, checksum: bytes) -> None:
        tokens = checksum.decode("ascii", errors="replace").split()
        if not tokens:
            return
        expected = tokens[0].lower()
        actual = hashlib.sha1(data).hexdigest()
        if expected != actual:
            raise ArtifactTransferError(
                url,
                f"checksum mismatch (expected {expected}, got {actual})",
            )

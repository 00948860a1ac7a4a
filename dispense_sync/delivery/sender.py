"""
Batch sender: serializes one batch and POSTs it to the downstream endpoint.
"""

import time
from logging import Logger

import httpx

from dispense_sync.core.models import Batch
from dispense_sync.observability.logger import get_logger
from dispense_sync.observability.metrics import MetricsCollector

from .outcome import Delivered, Rejected, SendOutcome, TransportFailure

API_KEY_HEADER = "X-API-Key"


class BatchSender:
    """
    Posts batches as a single JSON payload and classifies the result.

    One POST per batch with a bounded timeout. No retry happens here;
    a failed batch is left to the reconciliation policy and the next poll.
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 30.0,
        payload_field: str = "data",
        api_key: str | None = None,
        client: httpx.Client | None = None,
        metrics: MetricsCollector | None = None,
        logger: Logger | None = None,
    ):
        """
        Initialize sender.

        Args:
            api_url: Endpoint receiving the batches
            timeout: Seconds allowed for one POST
            payload_field: Top-level container field of the payload
            api_key: Optional key sent as X-API-Key
            client: Pre-built httpx client (tests); one is created otherwise
            metrics: Metrics collector
            logger: Logger instance
        """
        self.api_url = api_url
        self.timeout = timeout
        self.payload_field = payload_field
        self.metrics = metrics or MetricsCollector()
        self.logger = logger or get_logger(__name__)

        headers = {"Accept": "application/json"}
        if api_key:
            headers[API_KEY_HEADER] = api_key

        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout), headers=headers)
        if client is not None:
            self._client.headers.update(headers)

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "BatchSender":
        return cls(
            api_url=settings.api_url,
            timeout=settings.http_timeout,
            payload_field=settings.payload_field,
            api_key=settings.api_key,
            **kwargs,
        )

    def send(self, batch: Batch) -> SendOutcome:
        """
        POST one batch.

        Args:
            batch: Batch to deliver (keys are not sent)

        Returns:
            Delivered, Rejected or TransportFailure
        """
        payload = batch.to_payload(self.payload_field)
        start = time.perf_counter()

        try:
            response = self._client.post(self.api_url, json=payload, timeout=self.timeout)
        except httpx.HTTPError as e:
            duration = time.perf_counter() - start
            outcome: SendOutcome = TransportFailure(
                cause=str(e) or repr(e),
                error_type=type(e).__name__,
                transient=isinstance(e, httpx.TransportError),
            )
            self.metrics.record_batch_sent(outcome.kind, len(batch), duration)
            self.logger.error(
                f"Batch {batch.number} could not be sent: {outcome.describe()}",
                extra={
                    "batch_number": batch.number,
                    "batch_size": len(batch),
                    "error_type": outcome.error_type,
                },
            )
            return outcome

        duration = time.perf_counter() - start
        if response.is_success:
            outcome = Delivered(status_code=response.status_code, body=response.text)
            self.logger.info(
                f"Batch {batch.number} delivered ({len(batch)} records)",
                extra={
                    "batch_number": batch.number,
                    "batch_size": len(batch),
                    "status_code": response.status_code,
                    "duration_seconds": round(duration, 3),
                },
            )
        else:
            outcome = Rejected(status_code=response.status_code, body=response.text)
            self.logger.error(
                f"Batch {batch.number} rejected: {outcome.describe()}",
                extra={
                    "batch_number": batch.number,
                    "batch_size": len(batch),
                    "status_code": response.status_code,
                    "error_type": "RejectedResponse",
                },
            )

        self.metrics.record_batch_sent(outcome.kind, len(batch), duration)
        return outcome

    def close(self) -> None:
        """Close the HTTP client if this sender created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

import asyncio
import math
from datetime import datetime, timezone
from typing import Callable, List, Optional

import httpx
from pydantic import ValidationError

from scanners.openapi import OpenAPIScanner
from scanners.rls import RLSScanner

from .batching import ProgressSink, gather_in_batches
from .config import TargetConfig
from .errors import ConnectionUnreachable, SchemaUnavailable
from .http import ResilientClient, Sleep
from .logger import ScanLogger
from .models import (
    AccessState,
    AssessmentResult,
    Credential,
    EntityDescriptor,
    EntityScanResult,
    PartialFailure,
    ProgressEvent,
    ProgressStage,
)
from .scoring import risk_level, risk_score, summarize
from .session import SessionManager

ProgressListener = Callable[[ProgressEvent], object]


class Assessment:
    """
    One run against one target: connection test, schema enumeration, then
    batched table scans. Only the connection test and the enumeration can
    abort the run; a table that fails to scan becomes an errored entry and a
    partial failure.
    """
    def __init__(
        self,
        config: TargetConfig,
        on_progress: Optional[ProgressListener] = None,
        transport: httpx.AsyncBaseTransport = None,
        sleep: Sleep = None,
        cancel_event: asyncio.Event = None,
        logger: ScanLogger = None,
    ):
        self.config = config
        self.transport = transport
        self.sleep = sleep or asyncio.sleep
        self.cancel_event = cancel_event
        self.logger = logger or ScanLogger(verbose=config.verbose)
        self.progress = ProgressSink(on_progress, self.logger)

        self.started_at = datetime.now(timezone.utc)
        self.connection_ok = False
        self.connection_status: Optional[int] = None
        self.entities: List[EntityScanResult] = []
        self.partial_failures: List[PartialFailure] = []
        self.errors: List[str] = []
        self.cancelled = False

    async def run(self) -> AssessmentResult:
        try:
            async with SessionManager(self.config, transport=self.transport) as http:
                client = ResilientClient(http, self.logger, self.sleep)
                await self._run(client)
        except Exception as e:
            self.logger.log_error(e, "assessment aborted")
            self.errors.append(f"Unexpected error: {e}")
        return self.result()

    async def _run(self, client: ResilientClient):
        if self._check_cancelled():
            return

        self.progress.publish(ProgressEvent(stage=ProgressStage.CONNECTION, message="Testing API connection..."))
        try:
            schema_response = await self.test_connection(client)
        except ConnectionUnreachable as e:
            self.logger.warn(e.message)
            self.errors.append(e.message)
            return

        if self._check_cancelled():
            return

        self.progress.publish(ProgressEvent(stage=ProgressStage.ENUMERATION, message="Enumerating database tables..."))
        try:
            enumeration = await OpenAPIScanner(client, self.config, self.logger).enumerate(schema_response)
        except SchemaUnavailable as e:
            self.logger.warn(e.message)
            self.errors.append(e.message)
            return
        entities = enumeration.entities
        self.progress.publish(ProgressEvent(
            stage=ProgressStage.ENUMERATION,
            message=f"Found {len(entities)} tables",
            total=len(entities),
        ))

        await self.analyze(client, entities)

        summary = summarize(self.entities)
        self.progress.publish(ProgressEvent(
            stage=ProgressStage.COMPLETE,
            message="Scan cancelled" if self.cancelled else "Scan complete",
            current=len(self.entities),
            total=len(entities),
            summary=summary,
            partial_failures=len(self.partial_failures),
        ))

    async def test_connection(self, client: ResilientClient) -> httpx.Response:
        """Fetches the schema root; the response is reused for enumeration."""
        outcome = await client.get(self.config.schema_endpoint, max_attempts=self.config.max_attempts)
        self.connection_status = outcome.status
        if not outcome.ok:
            raise ConnectionUnreachable(f"Failed to connect to API: {outcome.error}", status=outcome.status)
        self.connection_ok = True
        self.logger.log(f"[+] Connected to {self.config.url} (HTTP {outcome.status})", "green")
        return outcome.response

    async def analyze(self, client: ResilientClient, entities: List[EntityDescriptor]):
        scanner = RLSScanner(client, self.config, self.logger)
        size = self.config.batch_size
        total = len(entities)
        total_batches = math.ceil(total / size)
        self.logger.log(f"[*] Processing {total} tables in {total_batches} batches", "cyan")

        done = 0
        batches = gather_in_batches(
            entities, size, scanner.scan,
            delay=self.config.batch_delay,
            sleep=self.sleep,
            should_stop=self._check_cancelled,
        )
        async for index, batch, results in batches:
            # single writer: only this coroutine appends, after the whole group is gathered
            for entity, result in zip(batch, results):
                if isinstance(result, BaseException):
                    self.logger.log_error(result, entity.name)
                    result = EntityScanResult(
                        name=entity.name,
                        access_state=AccessState.ERRORED,
                        columns=entity.columns,
                        error=str(result) or type(result).__name__,
                    )
                self.entities.append(result)
                if result.access_state == AccessState.ERRORED:
                    self.partial_failures.append(PartialFailure(name=result.name, error=result.error))
            done += len(batch)
            self.progress.publish(ProgressEvent(
                stage=ProgressStage.ANALYSIS,
                message=f"Analyzed {done}/{total} tables",
                current=done,
                total=total,
                batch_index=index,
                total_batches=total_batches,
            ))

    def _check_cancelled(self) -> bool:
        if self.cancel_event is None or not self.cancel_event.is_set():
            return False
        if not self.cancelled:
            self.cancelled = True
            self.errors.append("Assessment cancelled")
            self.logger.warn("Assessment cancelled")
        return True

    def result(self) -> AssessmentResult:
        score = risk_score(self.entities)
        return AssessmentResult(
            endpoint_base_url=self.config.url,
            timestamp=self.started_at,
            connection_ok=self.connection_ok,
            connection_status=self.connection_status,
            entities=self.entities,
            summary=summarize(self.entities),
            partial_failures=self.partial_failures,
            errors=self.errors,
            cancelled=self.cancelled,
            risk_score=score,
            risk_level=risk_level(score),
        )


async def run_assessment(
    endpoint_base_url: str,
    bearer_token: str,
    on_progress: Optional[ProgressListener] = None,
    *,
    config: TargetConfig = None,
    transport: httpx.AsyncBaseTransport = None,
    sleep: Sleep = None,
    cancel_event: asyncio.Event = None,
    logger: ScanLogger = None,
) -> AssessmentResult:
    """Runs a full assessment. Never raises; failures land in the result."""
    try:
        credential = Credential(endpoint_base_url=endpoint_base_url, bearer_token=bearer_token)
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        return AssessmentResult(endpoint_base_url=str(endpoint_base_url), errors=[f"Invalid credential: {messages}"])

    settings = config.model_dump() if config is not None else {}
    settings.update(url=credential.endpoint_base_url, key=credential.bearer_token)
    assessment = Assessment(
        TargetConfig(**settings),
        on_progress=on_progress,
        transport=transport,
        sleep=sleep,
        cancel_event=cancel_event,
        logger=logger,
    )
    return await assessment.run()

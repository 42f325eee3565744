"""Behavioural tests for forwarding retries against real connectors."""

from __future__ import annotations

import collections
import datetime as dt
import typing as typ

import httpx
import pytest
from pytest_bdd import given, parsers, scenario, then, when

from beacon.connectors import build_connectors
from beacon.destinations import DestinationRegistry
from beacon.events import EventStore
from beacon.forwarding import (
    DispatchWorker,
    DispatchWorkerDependencies,
    ForwardingQueue,
    JobState,
    RetryPolicy,
)
from beacon.routing import DestinationType
from beacon.vault import CredentialVault
from tests.helpers import run_async
from tests.helpers.builders import (
    CREDENTIALS,
    GRANTED,
    TEST_ENCRYPTION_KEY,
    MutableClock,
    RecordingNotifier,
    add_destination,
    enqueue_event,
)

if typ.TYPE_CHECKING:
    from beacon.forwarding import DispatchReport
    from tests.features.conftest import ScenarioDatabase

GA4_HOST = "www.google-analytics.com"
WEBHOOK_HOST = httpx.URL(CREDENTIALS[DestinationType.WEBHOOK]["url"]).host


class ProviderStub:
    """Answer provider calls, failing GA4 according to a plan."""

    def __init__(self) -> None:
        self.requests: collections.Counter[str] = collections.Counter()
        self.ga4_failure_status = 500
        self.ga4_failures_left: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.requests[host] += 1
        if host == GA4_HOST and self._ga4_should_fail():
            return httpx.Response(self.ga4_failure_status)
        return httpx.Response(204 if host == GA4_HOST else 200)

    def _ga4_should_fail(self) -> bool:
        if self.ga4_failures_left is None:
            return True
        if self.ga4_failures_left > 0:
            self.ga4_failures_left -= 1
            return True
        return False


class ForwardingContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    clock: MutableClock
    queue: ForwardingQueue
    registry: DestinationRegistry
    notifier: RecordingNotifier
    provider: ProviderStub
    job_id: str
    reports: list[DispatchReport]


@scenario(
    "../forwarding_retries.feature",
    "A destination that keeps failing exhausts the job",
)
def test_failing_destination_exhausts_job() -> None:
    """Wrap the pytest-bdd scenario for exhaustion."""


@scenario(
    "../forwarding_retries.feature",
    "A retry only revisits destinations that failed",
)
def test_retry_revisits_failed_destinations() -> None:
    """Wrap the pytest-bdd scenario for partial retries."""


@pytest.fixture
def forwarding_context(scenario_database: ScenarioDatabase) -> ForwardingContext:
    """Wire a queue and registry to the scenario database and a fake clock."""
    clock = MutableClock()
    factory = scenario_database.session_factory
    return {
        "clock": clock,
        "queue": ForwardingQueue(factory, max_attempts=5, clock=clock),
        "registry": DestinationRegistry(
            factory, CredentialVault.from_secret(TEST_ENCRYPTION_KEY)
        ),
        "notifier": RecordingNotifier(),
        "provider": ProviderStub(),
        "reports": [],
    }


@given(parsers.parse('a queued "{name}" event for a GA4 destination'))
def given_queued_event(
    forwarding_context: ForwardingContext,
    scenario_database: ScenarioDatabase,
    name: str,
) -> None:
    """Configure GA4 and accept one event through ingestion."""

    async def _seed() -> str:
        await add_destination(forwarding_context["registry"], DestinationType.GA4)
        return await enqueue_event(
            EventStore(scenario_database.session_factory),
            forwarding_context["queue"],
            name,
            consent=GRANTED,
            sessionId="s-1",
        )

    forwarding_context["job_id"] = run_async(_seed)


@given("a webhook destination is configured")
def given_webhook_destination(forwarding_context: ForwardingContext) -> None:
    """Add an outbound webhook alongside GA4."""

    async def _add() -> None:
        await add_destination(forwarding_context["registry"], DestinationType.WEBHOOK)

    run_async(_add)


@given(
    parsers.parse("the GA4 endpoint fails with status {status:d} for every request")
)
def given_ga4_always_fails(forwarding_context: ForwardingContext, status: int) -> None:
    """Fail every GA4 call."""
    forwarding_context["provider"].ga4_failure_status = status


@given(
    parsers.parse("the GA4 endpoint fails with status {status:d} for the first request")
)
def given_ga4_fails_once(forwarding_context: ForwardingContext, status: int) -> None:
    """Fail only the first GA4 call."""
    provider = forwarding_context["provider"]
    provider.ga4_failure_status = status
    provider.ga4_failures_left = 1


@when("the dispatch worker runs until the job settles")
def when_worker_settles(
    forwarding_context: ForwardingContext, scenario_database: ScenarioDatabase
) -> None:
    """Process the job, advancing the clock past each scheduled retry."""
    context = forwarding_context
    factory = scenario_database.session_factory

    async def _run() -> list[DispatchReport]:
        reports: list[DispatchReport] = []
        transport = httpx.MockTransport(context["provider"])
        async with httpx.AsyncClient(transport=transport) as client:
            worker = DispatchWorker(
                DispatchWorkerDependencies(
                    queue=context["queue"],
                    events=EventStore(factory),
                    destinations=context["registry"],
                    connectors=build_connectors(client),
                    retry=RetryPolicy(
                        max_attempts=5, base_delay=dt.timedelta(seconds=2)
                    ),
                    notifier=context["notifier"],
                ),
                worker_id="bdd-worker",
            )
            while True:
                report = await worker.process(context["job_id"])
                assert report is not None, "job should be claimable once due"
                reports.append(report)
                if report.state is not JobState.RETRY_SCHEDULED:
                    return reports
                _, delay = context["notifier"].calls[-1]
                assert delay is not None, "retries are notified with a delay"
                context["clock"].advance(delay)

    context["reports"] = run_async(_run)


@then(parsers.parse('the job is exhausted with last error "{error}"'))
def then_job_exhausted(forwarding_context: ForwardingContext, error: str) -> None:
    """The job is parked with the failing destination named."""

    async def _load() -> tuple[JobState, str | None]:
        job = await forwarding_context["queue"].get(forwarding_context["job_id"])
        assert job is not None, "exhausted jobs are kept"
        return job.state, job.last_error

    state, last_error = run_async(_load)
    assert state is JobState.FAILED_EXHAUSTED, f"unexpected state {state}"
    assert last_error == error, f"expected {error!r}, got {last_error!r}"


@then(parsers.parse("the retry delays were {delays}"))
def then_retry_delays(forwarding_context: ForwardingContext, delays: str) -> None:
    """Backoff doubles from the base delay."""
    expected = [
        dt.timedelta(seconds=int(value))
        for value in delays.removesuffix(" seconds").split(", ")
    ]
    actual = [delay for _, delay in forwarding_context["notifier"].calls]
    assert actual == expected, f"expected delays {expected}, got {actual}"


@then(parsers.parse("the job is completed after {attempts:d} attempts"))
def then_job_completed(forwarding_context: ForwardingContext, attempts: int) -> None:
    """The last report completes the job."""
    reports = forwarding_context["reports"]
    assert reports[-1].state is JobState.COMPLETED, (
        f"unexpected final state {reports[-1].state}"
    )
    assert len(reports) == attempts, f"expected {attempts} attempts"


@then(parsers.re(r"the GA4 endpoint received (?P<count>\d+) requests?"))
def then_ga4_requests(forwarding_context: ForwardingContext, count: str) -> None:
    """Count calls that reached GA4."""
    received = forwarding_context["provider"].requests[GA4_HOST]
    assert received == int(count), f"expected {count} GA4 calls, got {received}"


@then(parsers.re(r"the webhook endpoint received (?P<count>\d+) requests?"))
def then_webhook_requests(forwarding_context: ForwardingContext, count: str) -> None:
    """A delivered destination is not revisited on retry."""
    received = forwarding_context["provider"].requests[WEBHOOK_HOST]
    assert received == int(count), f"expected {count} webhook calls, got {received}"

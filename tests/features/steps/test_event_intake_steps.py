"""Behavioural coverage for idempotent event intake."""

from __future__ import annotations

import typing as typ

import falcon.testing
import msgspec
import pytest
from pytest_bdd import given, parsers, scenario, then, when
from sqlalchemy import func, select

from beacon.admission import InMemoryCounterStore
from beacon.api.app import create_app
from beacon.api.factory import build_app_dependencies
from beacon.config import BeaconConfig
from beacon.destinations import DestinationRegistry
from beacon.forwarding import ForwardingConfig, ForwardingJob
from beacon.routing import DestinationType
from beacon.vault import CredentialVault
from beacon.webhooks import build_webhook_headers
from tests.helpers import run_async
from tests.helpers.builders import (
    TEST_ENCRYPTION_KEY,
    WEBHOOK_SECRET,
    RecordingNotifier,
    add_destination,
)

if typ.TYPE_CHECKING:
    from falcon.testing.client import Result

    from tests.features.conftest import ScenarioDatabase


class IntakeContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    client: falcon.testing.TestClient
    notifier: RecordingNotifier
    responses: list[Result]


@scenario("../event_intake.feature", "A retried tracking event is deduplicated")
def test_retried_event_is_deduplicated() -> None:
    """Wrap the pytest-bdd scenario for duplicate submissions."""


@scenario(
    "../event_intake.feature", "An unknown event name is stored but not forwarded"
)
def test_unknown_event_is_not_forwarded() -> None:
    """Wrap the pytest-bdd scenario for unrouted events."""


@scenario(
    "../event_intake.feature",
    "A signed conversion is recorded with its synthetic event",
)
def test_signed_conversion_is_recorded() -> None:
    """Wrap the pytest-bdd scenario for conversions."""


@pytest.fixture
def intake_context() -> IntakeContext:
    """Return empty scenario state."""
    return {"responses": []}


def _count_jobs(scenario_database: ScenarioDatabase) -> int:
    async def _count() -> int:
        async with scenario_database.session_factory() as session:
            total = await session.scalar(
                select(func.count()).select_from(ForwardingJob)
            )
            return int(total or 0)

    return run_async(_count)


@given("a Beacon app with a GA4 destination")
def given_app_with_ga4(
    intake_context: IntakeContext, scenario_database: ScenarioDatabase
) -> None:
    """Build the full app over the scenario database."""
    vault = CredentialVault.from_secret(TEST_ENCRYPTION_KEY)
    registry = DestinationRegistry(scenario_database.session_factory, vault)

    async def _configure() -> None:
        await add_destination(registry, DestinationType.GA4)

    run_async(_configure)
    notifier = RecordingNotifier()
    deps = build_app_dependencies(
        scenario_database.session_factory,
        BeaconConfig(webhook_secret=WEBHOOK_SECRET),
        notifier=notifier,
        counter_store=InMemoryCounterStore(),
        vault=vault,
        forwarding_config=ForwardingConfig(),
    )
    intake_context["client"] = falcon.testing.TestClient(create_app(deps))
    intake_context["notifier"] = notifier


@when(
    parsers.re(
        r'(a|the) client tracks "(?P<name>[^"]+)" with external id '
        r'"(?P<external_id>[^"]+)"( again)?'
    )
)
def when_client_tracks(
    intake_context: IntakeContext, name: str, external_id: str
) -> None:
    """Post one tracking event."""
    response = intake_context["client"].simulate_post(
        "/track", json={"name": name, "externalEventId": external_id}
    )
    assert response.status_code == 200, response.text
    intake_context["responses"].append(response)


@when(
    parsers.parse(
        'a signed "{status}" conversion worth {value_cents:d} cents is posted'
    )
)
def when_signed_conversion(
    intake_context: IntakeContext, status: str, value_cents: int
) -> None:
    """Post a conversion signed with the shared webhook secret."""
    raw = msgspec.json.encode({"status": status, "valueCents": value_cents})
    response = intake_context["client"].simulate_post(
        "/conversions", body=raw, headers=build_webhook_headers(raw, WEBHOOK_SECRET)
    )
    assert response.status_code == 200, response.text
    intake_context["responses"].append(response)


@then("the second response reports the first event id as deduplicated")
def then_second_is_deduped(intake_context: IntakeContext) -> None:
    """Compare the two receipts."""
    first, second = intake_context["responses"]
    assert second.json == {"ok": True, "id": first.json["id"], "deduped": True}, (
        f"expected a deduplicated receipt, got {second.json}"
    )


@then("the response lists no intended destinations")
def then_no_intended(intake_context: IntakeContext) -> None:
    """Unclassified events route nowhere."""
    (response,) = intake_context["responses"]
    assert response.json["intended"] == [], (
        f"expected no destinations, got {response.json['intended']}"
    )


@then("the response includes a conversion id and an event id")
def then_conversion_ids(intake_context: IntakeContext) -> None:
    """Both identifiers are returned to the caller."""
    (response,) = intake_context["responses"]
    assert response.json["conversionId"], "conversionId missing"
    assert response.json["eventId"], "eventId missing"


@then(parsers.parse('the intended destinations exclude "{destination}"'))
def then_intended_excludes(intake_context: IntakeContext, destination: str) -> None:
    """The routing table decides the intended destinations."""
    (response,) = intake_context["responses"]
    assert destination not in response.json["intended"], (
        f"{destination} should not be intended"
    )


@then("exactly one forwarding job exists")
def then_one_job(scenario_database: ScenarioDatabase) -> None:
    """Only the first submission created a job."""
    assert _count_jobs(scenario_database) == 1, "expected exactly one job"


@then("no forwarding job exists")
def then_no_job(scenario_database: ScenarioDatabase) -> None:
    """Unrouted events do not create jobs."""
    assert _count_jobs(scenario_database) == 0, "expected no jobs"


@then("the worker was notified once")
def then_notified_once(intake_context: IntakeContext) -> None:
    """Duplicates never wake the worker again."""
    notifier = intake_context["notifier"]
    assert len(notifier.calls) == 1, f"expected one notification, got {notifier.calls}"

"""Shared test fixtures for the intake service tests."""

import copy

import pytest

from intake_svc.notifications.channels import LoggingChannel, MessageChannel
from intake_svc.notifications.notifier import Notifier
from intake_svc.notifications.renderer import TemplateRenderer
from intake_svc.registries.memory import InMemoryRegistry
from intake_svc.requests.kinds import default_kinds
from intake_svc.requests.pipeline import ApprovalPipeline
from intake_svc.requests.references import RemoteValidator
from intake_svc.requests.service import RequestService
from intake_svc.requests.store import InMemoryRequestStore
from intake_svc.requests.types import ActorContext


LEGAL_ENTITY_ID = "7cc91a5d-c02f-41e9-b571-1ea4f2375552"
OTHER_LEGAL_ENTITY_ID = "1f0c2b7e-4d0a-4c55-9e7e-5a0b4a8f1d21"
DIVISION_ID = "b075f148-7f93-4fc2-b2ec-2d81b19a9b7b"
MISSING_DIVISION_ID = "00000000-0000-4000-8000-000000000001"
EMPLOYEE_ID = "e3d1b7a2-93c4-4a8e-8f51-3c2b9e0d6a10"

EMPLOYEE_PAYLOAD = {
    "legal_entity_id": LEGAL_ENTITY_ID,
    "division_id": DIVISION_ID,
    "employee_id": EMPLOYEE_ID,
    "position": "P2",
    "start_date": "2017-08-07",
    "employee_type": "DOCTOR",
    "party": {
        "first_name": "Petro",
        "last_name": "Ivanov",
        "email": "petro@example.com",
    },
}


class FailingChannel(MessageChannel):
    """Channel whose every send fails."""

    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, destination: str, text: str) -> None:
        self.attempts += 1
        raise RuntimeError("SMTP relay down")


def employee_payload(**overrides):
    """A valid employee request payload with optional top-level overrides."""
    payload = copy.deepcopy(EMPLOYEE_PAYLOAD)
    payload.update(overrides)
    return payload


def legal_entity_payload(**overrides):
    """A valid legal entity registration payload."""
    payload = {
        "name": "Clinic",
        "edrpou": "12345678",
        "type": "MSP",
        "email": "clinic@example.com",
        "owner": {"first_name": "Olena", "last_name": "Koval", "position": "P1"},
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Collaborator Fixtures
# =============================================================================

@pytest.fixture
def registry() -> InMemoryRegistry:
    """Registry seeded with the entities the sample payloads refer to."""
    return InMemoryRegistry({
        "legal_entities": [LEGAL_ENTITY_ID, OTHER_LEGAL_ENTITY_ID],
        "divisions": [DIVISION_ID],
        "employees": [EMPLOYEE_ID],
    })


@pytest.fixture
def store() -> InMemoryRequestStore:
    return InMemoryRequestStore()


@pytest.fixture
def kinds():
    return default_kinds()


@pytest.fixture
def channel() -> LoggingChannel:
    return LoggingChannel()


@pytest.fixture
def notifier(channel) -> Notifier:
    return Notifier(TemplateRenderer(), channel)


@pytest.fixture
def pipeline(store, registry, notifier) -> ApprovalPipeline:
    return ApprovalPipeline(store, registry, notifier, timeout_seconds=1.0)


@pytest.fixture
def service(store, kinds, registry, pipeline, notifier) -> RequestService:
    """RequestService wired to in-memory collaborators."""
    return RequestService(
        store=store,
        kinds=kinds,
        validator=RemoteValidator(registry, timeout_seconds=1.0),
        pipeline=pipeline,
        notifier=notifier,
    )


# =============================================================================
# Actor Fixtures
# =============================================================================

@pytest.fixture
def actor() -> ActorContext:
    """Reviewer acting within the sample legal entity."""
    return ActorContext(
        actor_id="reviewer-1",
        scope=LEGAL_ENTITY_ID,
        headers={"x-consumer-id": "reviewer-1"},
    )

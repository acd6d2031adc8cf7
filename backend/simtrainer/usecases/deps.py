"""
Collaborators shared by the use cases.

The process-wide instance is built lazily from settings; tests and the
evals harness install their own with set_services().
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from simtrainer.core.settings import settings
from simtrainer.infra.providers.gateway import FallbackGateway, build_gateway
from simtrainer.infra.repositories import (
    InMemoryObjectionCatalog,
    InMemoryReportRepository,
    InMemorySessionRepository,
    ObjectionCatalog,
    ReportRepository,
    SessionRepository,
)
from simtrainer.infra.session_store import SimulationStateStore


@dataclass
class Services:
    sessions: SessionRepository
    reports: ReportRepository
    catalog: ObjectionCatalog
    gateway: FallbackGateway
    store: SimulationStateStore = field(default_factory=SimulationStateStore)
    rng: random.Random = field(default_factory=random.Random)
    force_rule_based: bool = False


def build_services() -> Services:
    return Services(
        sessions=InMemorySessionRepository(),
        reports=InMemoryReportRepository(),
        catalog=InMemoryObjectionCatalog(),
        gateway=build_gateway(settings),
        rng=random.Random(settings.random_seed),
        force_rule_based=settings.force_rule_based,
    )


_services: Services | None = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Services | None) -> None:
    global _services
    _services = services

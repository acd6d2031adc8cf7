"""
Evaluation runner — executes scenarios and checks assertions.

Usage:
    cd backend
    python -m simtrainer.evals.run_evals

Runs each scenario through the use cases (rule-based analysis, template
client replies, mock objection reviewer), ends the session, checks the
summary against expectations and prints a report.
"""

from __future__ import annotations

import asyncio
import random
import sys

from simtrainer.evals.scenarios import SCENARIOS, Scenario
from simtrainer.infra.providers.gateway import FallbackGateway
from simtrainer.infra.providers.mock_provider import MockBackend
from simtrainer.infra.repositories import (
    InMemoryObjectionCatalog,
    InMemoryReportRepository,
    InMemorySessionRepository,
)
from simtrainer.usecases.analyze_simulation import analyze_simulation
from simtrainer.usecases.deps import Services
from simtrainer.usecases.end_simulation import end_simulation
from simtrainer.usecases.process_message import process_message
from simtrainer.usecases.start_simulation import start_simulation


def _services(seed: int) -> Services:
    return Services(
        sessions=InMemorySessionRepository(),
        reports=InMemoryReportRepository(),
        catalog=InMemoryObjectionCatalog(),
        gateway=FallbackGateway([MockBackend()]),
        rng=random.Random(seed),
        force_rule_based=True,
    )


async def run_scenario(scenario: Scenario) -> tuple[bool, list[str]]:
    """
    Run a single scenario and return (passed, list_of_failure_messages).
    """
    failures: list[str] = []
    svc = _services(scenario.seed)

    started = await start_simulation(
        scenario.scenario_type,
        scenario.difficulty,
        trainee_id="evals",
        services=svc,
    )
    session_id = started["session_id"]

    for message in scenario.turns:
        await process_message(session_id, message, services=svc)

    summary = await end_simulation(session_id, scenario.end_reason, services=svc)

    if summary["status"] != scenario.expected_status:
        failures.append(
            f"Status: expected '{scenario.expected_status}', got '{summary['status']}'"
        )

    if scenario.expected_outcomes and summary["outcome"] not in scenario.expected_outcomes:
        failures.append(
            f"Outcome: expected one of {scenario.expected_outcomes}, got '{summary['outcome']}'"
        )

    score = summary["preliminary_score"]
    if score < scenario.min_score:
        failures.append(f"Score too low: {score} < {scenario.min_score}")
    if score > scenario.max_score:
        failures.append(f"Score too high: {score} > {scenario.max_score}")

    if summary["turn_count"] < scenario.min_turns:
        failures.append(f"Too few turns: {summary['turn_count']} < {scenario.min_turns}")

    # Analysis must always produce all six skills, even with the model offline
    analysis = await analyze_simulation(session_id, services=svc)
    if len(analysis["skill_scores"]) != 6:
        failures.append(f"Expected 6 skill scores, got {len(analysis['skill_scores'])}")

    print(
        f"  outcome={summary['outcome']} score={score} "
        f"objections={summary['resolved_objections']}/{summary['total_objections']} "
        f"turns={summary['turn_count']} analysis={analysis['overall_performance']['score']}"
    )
    return len(failures) == 0, failures


async def main():
    print("=" * 60)
    print("Sales Roleplay Evaluation Harness")
    print("=" * 60)
    print()

    passed_count = 0
    total = len(SCENARIOS)

    for scenario in SCENARIOS:
        print(f"--- {scenario.name}: {scenario.description}")

        ok, failures = await run_scenario(scenario)

        if ok:
            print("  PASS")
            passed_count += 1
        else:
            print("  FAIL:")
            for f in failures:
                print(f"    - {f}")
        print()

    print("=" * 60)
    print(f"Results: {passed_count}/{total} passed")
    print("=" * 60)

    if passed_count < total:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

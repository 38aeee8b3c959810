"""Aggregate attributed calls into a statistics snapshot.

Two policies share one fold driver, :func:`aggregate`:

``dedup``
    Missed inbound calls are credited to the first agent who missed them and
    stay "unanswered" until any later call to or from the same number succeeds,
    whichever agent handled it.

``simple``
    Plain per-call counting; outbound calls with a non-success failure code also
    count as missed. No memory across calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Protocol, TypeVar

from callstats.domain.models import AgentStats, AttributedCall, StatisticsSnapshot

DEFAULT_MISSED_CODE = "304"
DEFAULT_SUCCESS_CODE = "200"

StateT = TypeVar("StateT")


@dataclass(slots=True)
class Counters:
    total_calls: int = 0
    inbound: int = 0
    outbound: int = 0
    missed_inbound: int = 0
    missed_outbound: int = 0
    numbers: set[str] = field(default_factory=set)

    def count_call(self, call: AttributedCall) -> None:
        self.total_calls += 1
        self.numbers.add(call.normalized_phone)
        if call.is_inbound:
            self.inbound += 1
        else:
            self.outbound += 1


@dataclass(slots=True)
class AggregationState:
    totals: Counters = field(default_factory=Counters)
    agents: dict[str, Counters] = field(default_factory=dict)

    def counters_for(self, agent_name: str) -> Counters:
        counters = self.agents.get(agent_name)
        if counters is None:
            counters = self.agents[agent_name] = Counters()
        return counters


@dataclass(slots=True)
class DedupState(AggregationState):
    answered_numbers: set[str] = field(default_factory=set)
    unresolved: dict[str, str] = field(default_factory=dict)


class AggregationPolicy(Protocol[StateT]):
    name: str

    def initial(self) -> StateT: ...

    def step(self, state: StateT, call: AttributedCall) -> None: ...

    def finalize(self, state: StateT) -> StatisticsSnapshot: ...


class DedupMissedPolicy:
    """Number-centric missed-call attribution with cross-call resolution."""

    name = "dedup"

    def __init__(self, missed_code: str = DEFAULT_MISSED_CODE, success_code: str = DEFAULT_SUCCESS_CODE) -> None:
        self.missed_code = missed_code
        self.success_code = success_code

    def initial(self) -> DedupState:
        return DedupState()

    def step(self, state: DedupState, call: AttributedCall) -> None:
        phone = call.normalized_phone
        agent = state.counters_for(call.agent_name)
        state.totals.count_call(call)
        agent.count_call(call)

        if call.is_inbound and call.failure_code == self.missed_code:
            state.totals.missed_inbound += 1
            agent.missed_inbound += 1
            if phone not in state.unresolved and phone not in state.answered_numbers:
                state.unresolved[phone] = call.agent_name

        if call.failure_code == self.success_code:
            state.answered_numbers.add(phone)
            state.unresolved.pop(phone, None)

    def finalize(self, state: DedupState) -> StatisticsSnapshot:
        agents = {
            name: _agent_stats(
                counters,
                unanswered=tuple(phone for phone, owner in state.unresolved.items() if owner == name),
            )
            for name, counters in state.agents.items()
        }
        return _snapshot(self.name, state, agents, unanswered_count=len(state.unresolved))


class SimpleCountPolicy:
    """Independent per-call counting."""

    name = "simple"

    def __init__(self, missed_code: str = DEFAULT_MISSED_CODE, success_code: str = DEFAULT_SUCCESS_CODE) -> None:
        self.missed_code = missed_code
        self.success_code = success_code

    def initial(self) -> AggregationState:
        return AggregationState()

    def step(self, state: AggregationState, call: AttributedCall) -> None:
        agent = state.counters_for(call.agent_name)
        state.totals.count_call(call)
        agent.count_call(call)

        if call.is_inbound:
            if call.failure_code == self.missed_code:
                state.totals.missed_inbound += 1
                agent.missed_inbound += 1
        elif call.failure_code and call.failure_code != self.success_code:
            state.totals.missed_outbound += 1
            agent.missed_outbound += 1

    def finalize(self, state: AggregationState) -> StatisticsSnapshot:
        agents = {name: _agent_stats(counters) for name, counters in state.agents.items()}
        return _snapshot(self.name, state, agents, unanswered_count=None)


def build_policy(
    name: str,
    *,
    missed_code: str = DEFAULT_MISSED_CODE,
    success_code: str = DEFAULT_SUCCESS_CODE,
) -> DedupMissedPolicy | SimpleCountPolicy:
    if name == DedupMissedPolicy.name:
        return DedupMissedPolicy(missed_code, success_code)
    if name == SimpleCountPolicy.name:
        return SimpleCountPolicy(missed_code, success_code)
    raise ValueError(f"Unknown aggregation policy: {name!r}")


def aggregate(calls: Iterable[AttributedCall], policy: AggregationPolicy) -> StatisticsSnapshot:
    """Fold chronologically ordered ``calls`` into a snapshot under ``policy``."""
    state = policy.initial()
    for call in calls:
        policy.step(state, call)
    return policy.finalize(state)


def _agent_stats(counters: Counters, unanswered: tuple[str, ...] | None = None) -> AgentStats:
    return AgentStats(
        total_calls=counters.total_calls,
        inbound=counters.inbound,
        outbound=counters.outbound,
        missed_inbound=counters.missed_inbound,
        missed_outbound=counters.missed_outbound,
        unique_numbers=len(counters.numbers),
        unanswered_numbers=unanswered,
    )


def _snapshot(
    policy: str,
    state: AggregationState,
    agents: dict[str, AgentStats],
    *,
    unanswered_count: int | None,
) -> StatisticsSnapshot:
    totals = state.totals
    return StatisticsSnapshot(
        policy=policy,
        total_calls=totals.total_calls,
        total_inbound=totals.inbound,
        total_outbound=totals.outbound,
        missed_inbound=totals.missed_inbound,
        missed_outbound=totals.missed_outbound,
        unique_numbers=len(totals.numbers),
        unanswered_count=unanswered_count,
        agents=MappingProxyType(agents),
    )

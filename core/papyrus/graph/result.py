"""
Result vocabulary shared by every command node.

- NodeResult: what a single evaluation reports to the parent
- RetryPolicy: how an Execute node turns a failed reply into its result
- ParallelSuccessState: how a Parallel node aggregates its children
"""

from collections.abc import Callable, Sequence
from enum import StrEnum


class NodeResult(StrEnum):
    """Outcome of evaluating a node for one tick."""

    PENDING = "pending"  # Still working, evaluate again next tick
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not NodeResult.PENDING


class RetryPolicy(StrEnum):
    """What an Execute node does when its command reply reports failure."""

    ALWAYS_RETRY = "always_retry"  # Re-issue until a success reply arrives
    IGNORE_ERRORS = "ignore_errors"  # Treat failure as success
    NO_RETRY = "no_retry"  # Report FAILED


class ParallelSuccessState(StrEnum):
    """Aggregation policies for ParallelCommandNode."""

    ALL_SUCCESS = "all_success"


# Maps the per-child results seen so far (None = not yet evaluated this tick)
# to the composite result.
Aggregator = Callable[[Sequence[NodeResult | None]], NodeResult]


def _all_success(results: Sequence[NodeResult | None]) -> NodeResult:
    if any(r == NodeResult.FAILED for r in results):
        return NodeResult.FAILED
    if all(r == NodeResult.SUCCESS for r in results):
        return NodeResult.SUCCESS
    return NodeResult.PENDING


_AGGREGATORS: dict[ParallelSuccessState, Aggregator] = {
    ParallelSuccessState.ALL_SUCCESS: _all_success,
}


def get_aggregator(policy: ParallelSuccessState | Aggregator) -> Aggregator:
    """Resolve a policy member or a custom callable to an aggregator."""
    if isinstance(policy, ParallelSuccessState):
        return _AGGREGATORS[policy]
    if callable(policy):
        return policy
    raise TypeError(f"Unsupported parallel policy: {policy!r}")

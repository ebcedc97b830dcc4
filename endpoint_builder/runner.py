"""Run several endpoint builds concurrently, each one an isolated failure domain."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Union

from .builder import EndpointBuilder
from .errors import EndpointBuildError
from .models import BuildRequest, BuildResult

logger = logging.getLogger(__name__)


@dataclass
class BuildSummary:
    results: List[BuildResult] = field(default_factory=list)
    failures: List[EndpointBuildError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def created_resource_ids(self) -> List[str]:
        return [rid for result in self.results for rid in result.created_resource_ids]


def build_endpoints(builder: EndpointBuilder, requests: Sequence[BuildRequest],
                    max_workers: int = 1) -> BuildSummary:
    """
    Build every request; results and failures keep submission order.

    Runs share no state except the remote resource tree. Two runs that both
    create a shared ancestor resource are reconciled by the resolver, which
    adopts the resource the other run created.
    """
    outcomes: Dict[int, Union[BuildResult, EndpointBuildError]] = {}

    if max_workers <= 1 or len(requests) <= 1:
        for index, request in enumerate(requests):
            outcomes[index] = _build_one(builder, request)
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(requests))) as executor:
            future_to_index = {
                executor.submit(_build_one, builder, request): index
                for index, request in enumerate(requests)
            }
            for future in as_completed(future_to_index):
                outcomes[future_to_index[future]] = future.result()

    summary = BuildSummary()
    for index in range(len(requests)):
        outcome = outcomes[index]
        if isinstance(outcome, EndpointBuildError):
            summary.failures.append(outcome)
        else:
            summary.results.append(outcome)

    logger.info(
        f"Built {len(summary.results)}/{len(requests)} endpoints, "
        f"{len(summary.failures)} failed")
    return summary


def _build_one(builder: EndpointBuilder,
               request: BuildRequest) -> Union[BuildResult, EndpointBuildError]:
    try:
        return builder.build(request)
    except EndpointBuildError as e:
        logger.error(f"❌ {e}")
        return e

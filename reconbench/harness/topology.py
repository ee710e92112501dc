from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ..client import ClientFactory
from ..errors import StoreClientError, TopologyError

LOGGER = logging.getLogger("reconbench.harness.topology")


@dataclass(frozen=True)
class ClusterInfo:
    index: int
    endpoints: tuple[str, ...]
    member_ids: tuple[int, ...]  # in endpoint order
    leader_id: int | None = None
    leader_endpoint: str | None = None

    @property
    def member_set(self) -> frozenset[int]:
        return frozenset(self.member_ids)

    def owns(self, member_id: int) -> bool:
        return member_id in self.member_set


@dataclass(frozen=True)
class ClusterTopology:
    """Membership and leadership as observed before the experiment starts."""

    clusters: tuple[ClusterInfo, ...]
    leader_id: int
    leader_endpoint: str
    leader_cluster_index: int

    @property
    def leader_cluster(self) -> ClusterInfo:
        return self.clusters[self.leader_cluster_index]

    def secondary_clusters(self) -> list[ClusterInfo]:
        return [c for c in self.clusters if c.index != self.leader_cluster_index]

    def all_member_ids(self) -> list[int]:
        return [member_id for cluster in self.clusters for member_id in cluster.member_ids]


def discover_topology(
    clusters: Sequence[Sequence[str]],
    client_factory: ClientFactory,
    timeout: float,
) -> ClusterTopology:
    """Probe every endpoint once, sequentially, and agree on a single leader.

    Each client is opened and closed around its own probe. Any failed probe,
    any disagreement between non-zero leader ids, or the absence of an
    endpoint that identifies itself as the leader raises TopologyError.
    """
    leader_id = 0
    leader_endpoint: str | None = None
    leader_cluster_index = -1
    member_ids: list[list[int]] = []

    for idx, endpoints in enumerate(clusters):
        ids: list[int] = []
        for endpoint in endpoints:
            try:
                with client_factory(endpoint) as client:
                    status = client.status(timeout=timeout)
            except StoreClientError as exc:
                raise TopologyError(f"get status for endpoint {endpoint} failed: {exc}") from exc

            LOGGER.debug(
                "endpoint %s: member %d reports leader %d",
                endpoint,
                status.member_id,
                status.leader_id,
            )
            if status.leader_id != 0:
                if leader_id != 0 and status.leader_id != leader_id:
                    raise TopologyError(
                        f"leader not same: {leader_id} and {status.leader_id} (at {endpoint})"
                    )
                leader_id = status.leader_id
            if status.is_leader:
                leader_endpoint = endpoint
                leader_cluster_index = idx
            ids.append(status.member_id)
        member_ids.append(ids)

    if leader_endpoint is None or leader_cluster_index < 0:
        raise TopologyError("leader not found")
    LOGGER.info("found leader %d at endpoint %s", leader_id, leader_endpoint)

    infos = []
    for idx, endpoints in enumerate(clusters):
        owner = idx == leader_cluster_index
        infos.append(
            ClusterInfo(
                index=idx,
                endpoints=tuple(endpoints),
                member_ids=tuple(member_ids[idx]),
                leader_id=leader_id if owner else None,
                leader_endpoint=leader_endpoint if owner else None,
            )
        )
    return ClusterTopology(
        clusters=tuple(infos),
        leader_id=leader_id,
        leader_endpoint=leader_endpoint,
        leader_cluster_index=leader_cluster_index,
    )

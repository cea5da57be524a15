"""
Agent enumeration for one chain.

Fast path: read ``totalAgents()`` and hydrate IDs 1..N concurrently.
Slow path (count accessor failed): probe IDs 1, 2, 3, ... one at a time,
stopping at the first ID the registry proves does not exist. IDs are
assumed to be minted densely from 1.
"""

import asyncio
import logging
from typing import List, Optional

from .contract_adapter import ContractAdapter
from .hydrator import MetadataHydrator
from .models import Agent, HydrationResult, HydrationStatus
from .retry import RetryConfig, with_retry

logger = logging.getLogger("agent8004.discovery")

MAX_SEQUENTIAL_PROBES = 50


class AgentDiscoverer:
    """
    Produces the Agent records of one chain.

    Args:
        adapter: Chain connection
        hydrator: Per-ID hydrator
        retry_config: Policy for the total-count read
        max_sequential_probes: Ceiling for the slow path
    """

    def __init__(
        self,
        adapter: ContractAdapter,
        hydrator: MetadataHydrator,
        retry_config: Optional[RetryConfig] = None,
        max_sequential_probes: int = MAX_SEQUENTIAL_PROBES,
    ) -> None:
        self.adapter = adapter
        self.hydrator = hydrator
        self.retry_config = retry_config
        self.max_sequential_probes = max_sequential_probes

    async def total_agents(self) -> int:
        count = await with_retry(
            lambda: self.adapter.call("identity", "totalAgents", []),
            self.retry_config,
            "totalAgents()",
        )
        return int(count)

    async def discover(self) -> List[Agent]:
        try:
            total = await self.total_agents()
        except Exception as e:
            logger.warning("totalAgents() failed, falling back to sequential discovery: %s", e)
            return await self.discover_sequential()

        logger.info("Found %d agents via totalAgents()", total)
        if total <= 0:
            return []
        return await self.discover_parallel(total)

    async def discover_parallel(self, total: int) -> List[Agent]:
        """Hydrate IDs 1..total concurrently and keep the ones that exist."""
        agent_ids = list(range(1, total + 1))
        outcomes = await asyncio.gather(
            *(self.hydrator.hydrate_outcome(agent_id) for agent_id in agent_ids),
            return_exceptions=True,
        )

        agents: List[Agent] = []
        for agent_id, outcome in zip(agent_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Agent #%d hydration crashed: %s", agent_id, outcome)
                continue
            self._log_skip(outcome)
            if outcome.status is HydrationStatus.FOUND:
                agents.append(outcome.agent)

        logger.info("Loaded %d of %d agents", len(agents), total)
        return agents

    async def discover_sequential(self) -> List[Agent]:
        """Probe IDs in order until one is proven not to exist."""
        logger.info(
            "Sequential discovery, probing up to %d agents", self.max_sequential_probes
        )
        agents: List[Agent] = []
        for agent_id in range(1, self.max_sequential_probes + 1):
            outcome = await self.hydrator.hydrate_outcome(agent_id)
            if outcome.status is HydrationStatus.NOT_FOUND:
                logger.info("Agent #%d does not exist, stopping discovery", agent_id)
                break
            self._log_skip(outcome)
            if outcome.status is HydrationStatus.FOUND:
                agents.append(outcome.agent)

        logger.info("Loaded %d agents via sequential discovery", len(agents))
        return agents

    @staticmethod
    def _log_skip(outcome: HydrationResult) -> None:
        if outcome.status is HydrationStatus.UNAVAILABLE:
            logger.warning("Skipping agent #%d: %s", outcome.agent_id, outcome.error)
        elif outcome.status is HydrationStatus.NOT_FOUND:
            logger.debug("Agent #%d does not exist", outcome.agent_id)

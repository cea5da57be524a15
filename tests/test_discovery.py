"""Tests for agent enumeration"""

import pytest

from agent8004.discovery import MAX_SEQUENTIAL_PROBES, AgentDiscoverer
from agent8004.hydrator import MetadataHydrator
from agent8004.models import HydrationResult
from agent8004.resolver import DEFAULT_IPFS_GATEWAYS, ContentResolver

from fakes import FAST_RETRY, FakeAdapter, GatewayStub

DEFAULT_GATEWAY_HOSTS = {"dweb.link", "cloudflare-ipfs.com", "gateway.pinata.cloud", "ipfs.io"}


def make_discoverer(adapter, stub, max_sequential_probes=MAX_SEQUENTIAL_PROBES):
    http = stub.client()
    hydrator = MetadataHydrator(adapter, ContentResolver(http), FAST_RETRY)
    return AgentDiscoverer(adapter, hydrator, FAST_RETRY, max_sequential_probes), http


class TestParallelDiscovery:
    """Fast path driven by totalAgents()"""

    @pytest.mark.asyncio
    async def test_all_agents_hydrated(self):
        adapter = FakeAdapter(
            agents={1, 2, 3},
            total=3,
            uris={
                1: "ipfs://QmBot1",
                2: "https://agents.test/2.json",
                3: "https://agents.test/3.json",
            },
            summary=(1, 70),
        )
        stub = GatewayStub(
            documents={
                f"{DEFAULT_IPFS_GATEWAYS[1]}QmBot1": {
                    "name": "Bot1",
                    "description": "x",
                    "endpoints": ["http://e"],
                },
                "https://agents.test/2.json": {"name": "Bot2"},
                "https://agents.test/3.json": {"name": "Bot3"},
            },
            timeout_hosts={"dweb.link"},
        )
        discoverer, http = make_discoverer(adapter, stub)
        async with http:
            agents = await discoverer.discover()

        assert [agent.id for agent in agents] == [1, 2, 3]
        assert agents[0].name == "Bot1"
        assert agents[0].description == "x"
        assert agents[0].endpoints == ["http://e"]
        assert all(agent.reputation == 70 for agent in agents)

    @pytest.mark.asyncio
    async def test_zero_total_returns_empty(self):
        adapter = FakeAdapter(total=0)
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover()
        assert agents == []
        assert adapter.count("ownerOf") == 0

    @pytest.mark.asyncio
    async def test_only_existing_ids_are_returned(self):
        adapter = FakeAdapter(agents={1, 3}, total=4)
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover()
        assert [agent.id for agent in agents] == [1, 3]
        assert sorted(set(adapter.probed_ids())) == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_unavailable_id_does_not_affect_siblings(self):
        adapter = FakeAdapter(
            agents={1, 2, 3},
            total=3,
            owner_errors={2: ConnectionError("connection reset")},
        )
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover()
        assert [agent.id for agent in agents] == [1, 3]

    @pytest.mark.asyncio
    async def test_crashing_hydration_is_isolated(self):
        adapter = FakeAdapter(agents={1, 2}, total=2)
        discoverer, http = make_discoverer(adapter, GatewayStub())
        original = discoverer.hydrator.hydrate_outcome

        async def hydrate_outcome(agent_id):
            if agent_id == 1:
                raise RuntimeError("boom")
            return await original(agent_id)

        discoverer.hydrator.hydrate_outcome = hydrate_outcome
        async with http:
            agents = await discoverer.discover()
        assert [agent.id for agent in agents] == [2]

    @pytest.mark.asyncio
    async def test_metadata_outage_keeps_agent(self):
        adapter = FakeAdapter(agents={5}, total=5, uris={5: "ipfs://QmAgentFive"})
        stub = GatewayStub(timeout_hosts=DEFAULT_GATEWAY_HOSTS)
        discoverer, http = make_discoverer(adapter, stub)
        async with http:
            agents = await discoverer.discover()

        assert len(agents) == 1
        agent = agents[0]
        assert agent.id == 5
        assert agent.metadata.metadata_failed is True
        assert "Metadata Error" in agent.name
        assert len(stub.requests) == 4


class TestSequentialDiscovery:
    """Slow path when totalAgents() is unavailable"""

    @pytest.mark.asyncio
    async def test_stops_at_first_nonexistent_id(self):
        adapter = FakeAdapter(agents={1, 2, 4})
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover()

        assert [agent.id for agent in agents] == [1, 2]
        assert adapter.probed_ids() == [1, 2, 3]
        assert adapter.count("totalAgents") == 1

    @pytest.mark.asyncio
    async def test_falls_back_when_count_read_keeps_failing(self):
        adapter = FakeAdapter(agents={1}, total_error=ConnectionError("connection reset"))
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover()
        assert [agent.id for agent in agents] == [1]
        assert adapter.count("totalAgents") == 3
        assert adapter.probed_ids() == [1, 2]

    @pytest.mark.asyncio
    async def test_unavailable_id_is_skipped_not_terminal(self):
        adapter = FakeAdapter(
            agents={1, 2, 3},
            owner_errors={2: ConnectionError("connection reset")},
        )
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover()
        assert [agent.id for agent in agents] == [1, 3]
        assert adapter.probed_ids()[-1] == 4

    @pytest.mark.asyncio
    async def test_probe_ceiling(self):
        adapter = FakeAdapter(agents=range(1, 100))
        discoverer, http = make_discoverer(adapter, GatewayStub(), max_sequential_probes=5)
        async with http:
            agents = await discoverer.discover()
        assert [agent.id for agent in agents] == [1, 2, 3, 4, 5]
        assert max(adapter.probed_ids()) == 5

    @pytest.mark.asyncio
    async def test_default_ceiling_is_fifty(self):
        adapter = FakeAdapter(agents=range(1, 100))
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover_sequential()
        assert len(agents) == MAX_SEQUENTIAL_PROBES == 50

    @pytest.mark.asyncio
    async def test_first_id_missing_yields_nothing(self):
        adapter = FakeAdapter(agents=set())
        discoverer, http = make_discoverer(adapter, GatewayStub())
        async with http:
            agents = await discoverer.discover()
        assert agents == []
        assert adapter.probed_ids() == [1]


@pytest.mark.asyncio
async def test_discovered_ids_match_existence_reads():
    """Every ID with a successful owner read appears exactly once."""
    existing = {1, 2, 5, 8}
    adapter = FakeAdapter(agents=existing, total=8)
    discoverer, http = make_discoverer(adapter, GatewayStub())
    async with http:
        agents = await discoverer.discover()
    ids = [agent.id for agent in agents]
    assert sorted(ids) == sorted(existing)
    assert len(ids) == len(set(ids))


def test_hydration_result_constructors():
    assert HydrationResult.not_found(3).agent is None
    assert HydrationResult.unavailable(3, "timeout").error == "timeout"

import asyncio
import itertools

from witransfer.discovery import Admission, PeerRegistry

from helpers import make_envelope

LOCAL = "192.168.1.10"


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_admit_inserts_new_peer():
    registry = PeerRegistry(LOCAL)

    assert registry.admit(make_envelope("192.168.1.20", "Bob")) is Admission.ACCEPTED

    peer = registry.get("192.168.1.20")
    assert peer.address == "192.168.1.20"
    assert peer.label == "Bob - bob-laptop"
    assert len(registry) == 1
    assert "192.168.1.20" in registry


def test_admission_is_idempotent_and_keeps_first_label():
    registry = PeerRegistry(LOCAL)
    registry.admit(make_envelope("192.168.1.20", "Bob"))

    result = registry.admit(make_envelope("192.168.1.20", "Mallory"))

    assert result is Admission.DUPLICATE
    assert len(registry) == 1
    assert registry.get("192.168.1.20").label == "Bob - bob-laptop"


def test_own_address_is_never_admitted():
    registry = PeerRegistry(LOCAL)
    assert registry.admit(make_envelope(LOCAL, "Me")) is Admission.SELF

    registry.admit(make_envelope("192.168.1.20", "Bob"))
    assert registry.admit(make_envelope(LOCAL, "Me")) is Admission.SELF
    assert LOCAL not in registry
    assert len(registry) == 1


def test_own_address_matches_in_any_spelling():
    registry = PeerRegistry("FE80::1")

    # Announcements decode to the compressed lowercase form
    assert registry.admit(make_envelope("fe80::1", "Alice")) is Admission.SELF
    assert registry.local_address == "fe80::1"
    assert len(registry) == 0


def test_foreign_protocol_is_dropped_silently():
    registry = PeerRegistry(LOCAL)
    changes = []
    registry.on_change(changes.append)

    result = registry.admit(make_envelope("192.168.1.20", "Bob", tag="OtherApp"))

    assert result is Admission.FOREIGN
    assert len(registry) == 0
    assert changes == []


def test_same_table_for_any_order_of_duplicates():
    envelopes = [
        make_envelope("192.168.1.20", "Bob"),
        make_envelope("192.168.1.20", "Bob"),
        make_envelope("192.168.1.21", "Carol"),
        make_envelope("192.168.1.22", "Dave", tag="OtherApp"),
        make_envelope(LOCAL, "Me"),
        make_envelope("192.168.1.21", "Carol"),
    ]

    tables = set()
    for order in itertools.permutations(envelopes):
        registry = PeerRegistry(LOCAL)
        for envelope in order:
            registry.admit(envelope)
        tables.add(tuple((p.address, p.label) for p in registry.list_peers()))

    assert tables == {(
        ("192.168.1.20", "Bob - bob-laptop"),
        ("192.168.1.21", "Carol - carol-laptop"),
    )}


def test_get_and_remove_unknown_address_return_none():
    registry = PeerRegistry(LOCAL)
    assert registry.get("10.9.9.9") is None
    assert registry.remove("10.9.9.9") is None


def test_remove_returns_entry_and_notifies():
    registry = PeerRegistry(LOCAL)
    registry.admit(make_envelope("192.168.1.20", "Bob"))
    changes = []
    registry.on_change(changes.append)

    removed = registry.remove("192.168.1.20")

    assert removed.label == "Bob - bob-laptop"
    assert len(registry) == 0
    assert changes == [[]]


def test_sinks_receive_snapshots_in_address_order():
    registry = PeerRegistry(LOCAL)
    changes = []
    registry.on_change(changes.append)

    registry.admit(make_envelope("192.168.1.30", "Carol"))
    registry.admit(make_envelope("192.168.1.20", "Bob"))
    registry.admit(make_envelope("192.168.1.20", "Bob"))

    assert len(changes) == 2
    assert [p.address for p in changes[-1]] == ["192.168.1.20", "192.168.1.30"]


def test_failing_sink_does_not_break_admission():
    registry = PeerRegistry(LOCAL)

    def broken(snapshot):
        raise RuntimeError("display went away")

    registry.on_change(broken)

    assert registry.admit(make_envelope("192.168.1.20", "Bob")) is Admission.ACCEPTED
    assert len(registry) == 1


def test_snapshots_are_copies():
    registry = PeerRegistry(LOCAL)
    registry.admit(make_envelope("192.168.1.20", "Bob"))

    registry.list_peers()[0].label = "changed"

    assert registry.get("192.168.1.20").label == "Bob - bob-laptop"


def test_sweep_without_ttl_keeps_peers_forever():
    clock = FakeClock()
    registry = PeerRegistry(LOCAL, clock=clock)
    registry.admit(make_envelope("192.168.1.20", "Bob"))

    clock.now += 10_000

    assert registry.sweep() == []
    assert len(registry) == 1


def test_sweep_expires_silent_peers():
    clock = FakeClock()
    registry = PeerRegistry(LOCAL, peer_ttl=10.0, clock=clock)
    registry.admit(make_envelope("192.168.1.20", "Bob"))
    registry.admit(make_envelope("192.168.1.21", "Carol"))
    changes = []
    registry.on_change(changes.append)

    clock.now += 6
    registry.admit(make_envelope("192.168.1.21", "Carol"))  # refreshes Carol only
    clock.now += 6

    expired = registry.sweep()

    assert [p.address for p in expired] == ["192.168.1.20"]
    assert [p.address for p in registry.list_peers()] == ["192.168.1.21"]
    assert [[p.address for p in snapshot] for snapshot in changes] == [["192.168.1.21"]]


def test_expired_peer_is_admitted_again():
    clock = FakeClock()
    registry = PeerRegistry(LOCAL, peer_ttl=5.0, clock=clock)
    registry.admit(make_envelope("192.168.1.20", "Bob"))

    clock.now += 6
    registry.sweep()

    assert registry.admit(make_envelope("192.168.1.20", "Bob")) is Admission.ACCEPTED


def test_consume_drains_queue():
    registry = PeerRegistry(LOCAL)

    async def scenario():
        queue = asyncio.Queue(maxsize=4)
        consumer = asyncio.create_task(registry.consume(queue))
        for address in ("192.168.1.20", "192.168.1.21", "192.168.1.20"):
            await queue.put(make_envelope(address, "Bob"))
        await queue.join()
        consumer.cancel()
        await asyncio.gather(consumer, return_exceptions=True)

    asyncio.run(scenario())

    assert [p.address for p in registry.list_peers()] == ["192.168.1.20", "192.168.1.21"]

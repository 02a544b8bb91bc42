"""
Producer/Consumer Tests

Tests the bounded FIFO buffer, blocking on full/empty and starvation of
actors that stay blocked.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.liveness import DetectionConfig, LivenessState
from models.resource_state import MalformedInputError
from simulations.producer_consumer import ProducerConsumerConfig, ProducerConsumerSimulation


def test_bounded_buffer():
    """Capacity is never exceeded; a full buffer blocks producers."""
    print("\n" + "="*60)
    print("TEST 1: Bounded Buffer")
    print("="*60)

    sim = ProducerConsumerSimulation(ProducerConsumerConfig(buffer_size=1, producers=2, consumers=0))
    sim.tick()
    assert list(sim.buffer) == [1]
    messages = sim.events.messages()
    assert "Producer 1 produced item 1." in messages
    assert "Buffer Full! Producer 2 blocked." in messages
    assert sim.classifier.get_state("P2").state == LivenessState.BLOCKED
    print("  ✓ Second producer blocked on a full buffer")

    for _ in range(10):
        sim.tick()
        assert len(sim.buffer) <= sim.config.buffer_size
    assert sim.next_item_id == 2, "Nothing produced while full"
    print("  ✓ Buffer never exceeds capacity")

    print("\n✅ Bounded Buffer Tests PASSED")


def test_fifo_order():
    """Items are consumed in production order."""
    print("\n" + "="*60)
    print("TEST 2: FIFO Order")
    print("="*60)

    sim = ProducerConsumerSimulation(ProducerConsumerConfig(buffer_size=4, producers=3, consumers=1))
    for _ in range(3):
        sim.tick()

    consumed = [m for m in sim.events.messages() if m.startswith("Consumer 1 consumed")]
    assert consumed == [
        "Consumer 1 consumed item 1.",
        "Consumer 1 consumed item 2.",
        "Consumer 1 consumed item 3.",
    ], consumed
    assert list(sim.buffer) == [4, 5, 6]
    assert sim.classifier.get_state("P3").state == LivenessState.BLOCKED
    print(f"  ✓ Buffer after 3 ticks: {list(sim.buffer)}")

    print("\n✅ FIFO Order Tests PASSED")


def test_consumer_starvation():
    """A consumer with no producer blocks every tick and starves."""
    print("\n" + "="*60)
    print("TEST 3: Consumer Starvation")
    print("="*60)

    config = ProducerConsumerConfig(
        buffer_size=2,
        producers=0,
        consumers=1,
        detection=DetectionConfig(starvation_threshold=3)
    )
    sim = ProducerConsumerSimulation(config)
    sim.tick()
    assert "Buffer Empty! Consumer 1 blocked." in sim.events.messages()
    sim.tick()
    assert sim.classifier.get_state("C1").state == LivenessState.BLOCKED
    sim.tick()
    record = sim.classifier.get_state("C1")
    assert record.state == LivenessState.STARVED
    assert record.consecutive_non_progress_ticks == 3
    print("  ✓ C1 starved after 3 blocked ticks")

    # The idle phase only marks activity; it doesn't reset the streak
    assert sim.snapshot()['activity']['C1'] == "finished"
    print("  ✓ Idle phase leaves the streak intact")

    print("\n✅ Consumer Starvation Tests PASSED")


def test_manual_actions():
    print("\n" + "="*60)
    print("TEST 4: Manual Actions")
    print("="*60)

    sim = ProducerConsumerSimulation(ProducerConsumerConfig(buffer_size=2, producers=1, consumers=1))
    assert not sim.manual_consume(1)
    assert sim.manual_produce(1)
    assert sim.manual_produce(1)
    assert not sim.manual_produce(1)
    assert sim.manual_consume(1)
    assert list(sim.buffer) == [2]
    assert "Consumer 1 consumed item 1." in sim.events.messages()
    print("  ✓ Manual produce/consume respect the buffer bounds")

    for config in (ProducerConsumerConfig(buffer_size=0), ProducerConsumerConfig(producers=-1)):
        try:
            ProducerConsumerSimulation(config)
            assert False, "Should have raised MalformedInputError"
        except MalformedInputError as e:
            print(f"  ✓ Rejected: {e}")

    print("\n✅ Manual Actions Tests PASSED")


def main():
    """Run all producer/consumer tests."""
    print("\n" + "="*70)
    print(" "*20 + "PRODUCER/CONSUMER TESTS")
    print("="*70)

    try:
        test_bounded_buffer()
        test_fifo_order()
        test_consumer_starvation()
        test_manual_actions()

        print("\n" + "="*70)
        print("\n🎉 ALL PRODUCER/CONSUMER TESTS PASSED")
        print("="*70 + "\n")
        return 0

    except AssertionError as e:
        print(f"\n❌ TEST FAILED: {e}")
        return 1
    except Exception as e:
        print(f"\n❌ ERROR: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())

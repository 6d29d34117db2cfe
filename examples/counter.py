"""
A counter shared by concurrent tasks; each call checks against its own old(count).

    python3 examples/counter.py
"""

import asyncio

from contractweave import PreconditionViolation, contract, postcondition, precondition


@contract({"count >= 0": "Count must never be negative."})
class Counter:
    count: int

    def __init__(self, count: int = 0):
        self.count = count

    @postcondition({"count == old(count) + 1": "Increment adds exactly one."})
    async def _increment(self) -> None:
        await asyncio.sleep(0)
        self.count += 1

    @precondition({"count > 0": "Cannot decrement below zero."})
    def _decrement(self) -> None:
        self.count -= 1


async def main():
    counters = [Counter(), Counter(10)]
    for _ in range(3):
        await asyncio.gather(*(counter.increment() for counter in counters))
    print([counter.count for counter in counters])

    empty = Counter()
    try:
        empty.decrement()
    except PreconditionViolation as e:
        print(f"rejected: {e}")


if __name__ == "__main__":
    asyncio.run(main())

"""Test data and polling helpers shared by unit and integration tests."""

import asyncio

US_SAMPLE = b"Emma,F,15581\nLiam,M,19659\n"


async def wait_until(predicate, timeout: float = 3.0, interval: float = 0.01) -> None:
    """Poll *predicate* until it is truthy or fail after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)

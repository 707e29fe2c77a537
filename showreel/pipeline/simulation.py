"""
Simulated step timings for demo mode.

Each step sleeps a random time inside its range, multiplied by
SIMULATION_TIME_SCALE (0 disables waiting entirely).
"""

import os
import random
import asyncio
import logging

logger = logging.getLogger(__name__)

# Step → (min_ms, max_ms)
PROCESS_TIMES = {
    "background": (2000, 4000),
    "mannequin": (4000, 8000),
    "script": (2000, 4000),
    "video": (5000, 10000),
    "tryon": (4000, 8000),
    "enhance": (2000, 2000),
    "tryon_video": (3000, 3000),
}


def time_scale() -> float:
    try:
        return max(float(os.getenv("SIMULATION_TIME_SCALE", "1.0")), 0.0)
    except ValueError:
        logger.warning("SIMULATION_TIME_SCALE is not a number, using 1.0")
        return 1.0


def simulated_duration(step: str) -> float:
    """Seconds to wait for a simulated step."""
    low, high = PROCESS_TIMES[step]
    return random.uniform(low, high) / 1000 * time_scale()


async def simulate_delay(step: str) -> float:
    seconds = simulated_duration(step)
    if seconds > 0:
        logger.debug(f"Simulating {step} for {seconds:.1f}s")
        await asyncio.sleep(seconds)
    return seconds

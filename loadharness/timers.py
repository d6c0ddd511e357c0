"""
Delay policies for staggering virtual user start times

A LoadTest asks its timer for a delay once per admitted user and sleeps for
that long before admitting the next one. Delays are in seconds.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np


class Timer(ABC):
    """Produces the delay between successive user admissions"""

    @abstractmethod
    def get_delay(self) -> float:
        """Return the delay in seconds before the next user starts"""


class ConstantTimer(Timer):
    """Always returns the configured delay; a zero delay starts users back to back"""

    def __init__(self, delay: float):
        self.delay = delay

    def get_delay(self) -> float:
        return self.delay

    def __repr__(self) -> str:
        return f"ConstantTimer(delay={self.delay})"


class RandomTimer(Timer):
    """
    Uniformly distributed delay in [delay, delay + variation)

    The combined value is passed through abs(), so a negative variation never
    yields a negative delay.
    """

    def __init__(self, delay: float, variation: float, seed: Optional[int] = None):
        self.delay = delay
        self.variation = variation
        self._rng = np.random.default_rng(seed)

    def get_delay(self) -> float:
        return float(abs(self._rng.random() * self.variation + self.delay))

    def __repr__(self) -> str:
        return f"RandomTimer(delay={self.delay}, variation={self.variation})"

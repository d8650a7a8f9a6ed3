"""
Automatable parameters.

A Param is an explicit ramp state machine:
    {start_value, start_time, target_value, ramp_deadline}
Every ramp_to() first cancels whatever ramp is in flight (freezing the value
it had reached) and then starts a new linear ramp from there, so repeated
updates always converge on the most recent target.
The render thread reads the parameter with values()/value_at(); it never
mutates it.
"""
from __future__ import annotations
import numpy as np


class Param:
    """A smoothly automatable scalar."""
    __slots__ = ('name', '_start_value', '_start_time', '_target', '_deadline')

    def __init__(self, value: float, name: str = "") -> None:
        self.name = name
        self._start_value = float(value)
        self._target = float(value)
        self._start_time = 0.0
        self._deadline = 0.0

    def __repr__(self) -> str:
        return f"Param({self.name!r}, target={self._target:.3f})"

    @property
    def target(self) -> float:
        """Value the parameter is heading to (or sitting at)."""
        return self._target

    @property
    def ramp_deadline(self) -> float:
        return self._deadline

    def is_ramping(self, now: float) -> bool:
        return self._start_time <= now < self._deadline

    def value_at(self, t: float) -> float:
        """Interpolated value at time t (seconds)."""
        if t >= self._deadline or self._deadline <= self._start_time:
            return self._target
        if t <= self._start_time:
            return self._start_value
        frac = (t - self._start_time) / (self._deadline - self._start_time)
        return self._start_value + (self._target - self._start_value) * frac

    def cancel(self, now: float) -> None:
        """Stop any in-flight ramp, holding the value reached at `now`."""
        held = self.value_at(now)
        self._start_value = held
        self._target = held
        self._start_time = now
        self._deadline = now

    def set_value(self, value: float, now: float = 0.0) -> None:
        """Jump to value immediately."""
        self._start_value = float(value)
        self._target = float(value)
        self._start_time = now
        self._deadline = now

    def ramp_to(self, value: float, duration: float, now: float) -> None:
        """Cancel the current ramp and glide linearly to value over duration."""
        self.cancel(now)
        if duration <= 0 or self._target == float(value):
            self.set_value(value, now)
            return
        self._target = float(value)
        self._deadline = now + duration

    def values(self, t0: float, frames: int, samplerate: int) -> np.ndarray:
        """Per-sample values for a render block starting at time t0."""
        t_end = t0 + frames / samplerate
        if self._deadline <= t0 or self._deadline <= self._start_time:
            return np.full(frames, self._target, dtype=np.float32)
        if t_end <= self._start_time:
            return np.full(frames, self._start_value, dtype=np.float32)
        times = t0 + np.arange(frames) / samplerate
        return np.interp(
            times,
            [self._start_time, self._deadline],
            [self._start_value, self._target],
        ).astype(np.float32)

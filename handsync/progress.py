"""
Frame-rate independent progress synchronization.

One ProgressSynchronizer owns the formation progress value. Every animation
subsystem reads the same raw value and eases it with ease_in_out_cubic, so
that all of them land on the same interpolation fraction within a tick.
"""
from .types import MacroState


def ease_in_out_cubic(x: float) -> float:
    """Cubic ease-in-out on [0, 1]. Shared by every subsystem."""
    if x < 0.5:
        return 4 * x * x * x
    return 1 - (-2 * x + 2) ** 3 / 2


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def approach(current: float, target: float, rate: float, dt: float) -> float:
    """
    Exponential approach of current towards target, scaled by elapsed time.

    The step fraction rate * dt is clamped to [0, 1] so a long frame lands
    on the target instead of overshooting it.
    """
    t = clamp01(rate * dt)
    return current + (target - current) * t


class VisibilityScalar:
    """
    Subsystem-local fade/scale value chasing 0 or 1.

    Not part of the shared progress value; each subsystem picks its own rate.
    """

    def __init__(self, rate: float, value: float = 0.0):
        self.rate = rate
        self.value = value

    def update(self, target: float, dt: float) -> float:
        self.value = approach(self.value, target, self.rate, dt)
        return self.value

    def update_visible(self, visible: bool, dt: float) -> float:
        return self.update(1.0 if visible else 0.0, dt)


class ProgressSynchronizer:
    """Integrates the shared formation progress towards its macro-state target."""

    def __init__(self, rate: float = 2.0, initial: float = 0.0, snap_epsilon: float = 0.001):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rate = rate
        self.snap_epsilon = snap_epsilon
        self.progress = clamp01(initial)

    @staticmethod
    def target_for(state: MacroState) -> float:
        return 1.0 if state == MacroState.ASSEMBLED else 0.0

    def tick(self, state: MacroState, dt: float) -> float:
        """
        Advance progress by one render tick.

        Args:
            state: Current macro-state
            dt: Elapsed wall-clock seconds since the previous tick

        Returns:
            The new raw progress value
        """
        if dt <= 0:
            return self.progress
        target = self.target_for(state)
        new = approach(self.progress, target, self.rate, dt)
        if abs(new - target) < self.snap_epsilon:
            new = target
        self.progress = clamp01(new)
        return self.progress

    @property
    def eased(self) -> float:
        return ease_in_out_cubic(self.progress)

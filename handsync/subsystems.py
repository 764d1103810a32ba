"""
Reference animation subsystems.

Each subsystem reads the per-tick FrameSnapshot and keeps its own local
animation state. None of them talk to each other; they agree on the
formation only because they all interpolate with snapshot.eased_progress.
"""
import math
from typing import Optional, Tuple

import numpy as np

from .config import SubsystemsConfig
from .gestures import lerp
from .progress import VisibilityScalar, approach
from .types import FrameSnapshot, GestureType, MacroState


def random_sphere_points(rng: np.random.Generator, count: int, radius: float) -> np.ndarray:
    """Uniformly distributed points inside a sphere, shape (count, 3)."""
    u = rng.random(count)
    v = rng.random(count)
    theta = 2 * np.pi * u
    phi = np.arccos(2 * v - 1)
    r = np.cbrt(rng.random(count)) * radius
    sin_phi = np.sin(phi)
    return np.stack([
        r * sin_phi * np.cos(theta),
        r * sin_phi * np.sin(theta),
        r * np.cos(phi),
    ], axis=1)


def random_cone_points(rng: np.random.Generator, count: int, height: float,
                       max_radius: float, y_offset: Optional[float] = None) -> np.ndarray:
    """Points inside an upright cone: wide at the bottom, narrow at the top."""
    if y_offset is None:
        y_offset = -height / 2
    y = rng.random(count) * height
    radius = max_radius * (1 - y / height)
    angle = rng.random(count) * 2 * np.pi
    r = np.sqrt(rng.random(count)) * radius  # uniform on the disk
    return np.stack([r * np.cos(angle), y + y_offset, r * np.sin(angle)], axis=1)


def blend(chaos: np.ndarray, target: np.ndarray, t: float) -> np.ndarray:
    return chaos + (target - chaos) * t


class Foliage:
    """Point cloud that flows from a scattered sphere into the cone."""

    def __init__(self, cfg: SubsystemsConfig, rng: Optional[np.random.Generator] = None):
        rng = rng or np.random.default_rng(cfg.seed)
        count = cfg.foliage_count
        self.chaos = random_sphere_points(rng, count, 15.0)
        self.target = random_cone_points(rng, count, cfg.tree_height, cfg.tree_radius, -5.0)
        self.point_scales = 0.5 + rng.random(count) * 0.5
        self.scale = VisibilityScalar(cfg.foliage_scale_rate, value=1.0)
        self.positions = self.chaos.copy()
        self.blend_fraction = 0.0

    def update(self, snapshot: FrameSnapshot, dt: float) -> None:
        self.scale.update_visible(snapshot.macro_visible, dt)
        self.blend_fraction = snapshot.eased_progress
        positions = blend(self.chaos, self.target, snapshot.eased_progress)
        # breathing once nearly formed
        if snapshot.progress > 0.9:
            bounce = np.sin(snapshot.elapsed * 3.0 + positions[:, 1] * 0.5) * 0.1
            positions[:, 1] += bounce
            positions[:, 0] += bounce * 0.2
        self.positions = positions * self.scale.value


class Ornaments:
    """Solid spheres hung on the cone surface."""

    GOLD = "#FCD34D"
    RED = "#ef4444"

    def __init__(self, cfg: SubsystemsConfig, rng: Optional[np.random.Generator] = None):
        rng = rng or np.random.default_rng(cfg.seed)
        count = cfg.ornament_count
        self.chaos = random_sphere_points(rng, count, 20.0)
        self.target = random_cone_points(rng, count, cfg.tree_height, cfg.tree_radius + 0.5, -5.0)
        self.base_scales = rng.random(count) * 0.4 + 0.3
        picks = rng.random(count)
        self.colors = [self.RED if p > 0.5 else self.GOLD for p in picks]
        self.scale = VisibilityScalar(cfg.ornament_scale_rate, value=1.0)
        self.positions = self.chaos.copy()
        self.instance_scales = self.base_scales.copy()
        self.blend_fraction = 0.0

    def update(self, snapshot: FrameSnapshot, dt: float) -> None:
        self.scale.update_visible(snapshot.macro_visible, dt)
        if self.scale.value < 0.01:
            return
        eased = snapshot.eased_progress
        self.blend_fraction = eased
        idx = np.arange(len(self.base_scales))
        positions = blend(self.chaos, self.target, eased)
        positions[:, 1] += np.sin(snapshot.elapsed * 2 + idx) * 0.1
        pulse = np.sin(snapshot.elapsed * 3 + idx) * 0.1 + 1 if eased > 0.8 else 1.0
        self.positions = positions
        self.instance_scales = self.base_scales * pulse


class Ribbon:
    """Spiral band that unrolls as the formation completes."""

    def __init__(self, cfg: SubsystemsConfig, turns: float = 5.5, points: int = 100):
        t = np.linspace(0.0, 1.0, points + 1)
        angle = t * turns * 2 * np.pi
        y_start, y_end = -4.5, cfg.tree_height - 5
        y = y_start + (y_end - y_start) * t
        r = (cfg.tree_radius + 0.5) * (1 - t * 0.95)
        self.path = np.stack([np.cos(angle) * r, y, np.sin(angle) * r], axis=1)
        self.rate = cfg.ribbon_scale_rate
        self.scale = 0.0
        self.rotation = 0.0

    def update(self, snapshot: FrameSnapshot, dt: float) -> None:
        shown = snapshot.macro_visible and snapshot.progress > 0.1
        target = (1.0 if shown else 0.0) * snapshot.eased_progress
        self.scale = approach(self.scale, target, self.rate, dt)
        if snapshot.macro_visible and snapshot.progress > 0.8:
            self.rotation -= dt * 0.2


class TreeCore:
    """
    Trunk and inner core meshes plus rotation of the whole group.

    Pointing up steers the rotation with the cursor; otherwise the
    assembled formation idles with a slow spin.
    """

    TRUNK_Y = (-6.0, -2.0)
    CORE_Y = (-4.0, 1.5)
    IDLE_SPIN = 0.005

    def __init__(self, cfg: SubsystemsConfig):
        self.presence = VisibilityScalar(cfg.core_presence_rate, value=0.0)
        self.rotation_rate = cfg.rotation_rate
        self.trunk_y = self.TRUNK_Y[0]
        self.core_y = self.CORE_Y[0]
        self.rotation = 0.0

    def update(self, snapshot: FrameSnapshot, dt: float) -> None:
        hand = snapshot.hand
        assembled = snapshot.macro_state == MacroState.ASSEMBLED
        if hand.present and hand.gesture == GestureType.POINTING_UP:
            target_rot = (hand.x - 0.5) * math.pi * 4
            self.rotation = approach(self.rotation, target_rot, self.rotation_rate, dt)
        elif assembled:
            self.rotation += self.IDLE_SPIN

        forming = assembled and snapshot.progress > 0.1
        target = 1.0 if (snapshot.macro_visible and forming) else 0.0
        rate = self.presence.rate
        self.presence.update(target, dt)
        self.trunk_y = approach(self.trunk_y, lerp(*self.TRUNK_Y, target), rate, dt)
        self.core_y = approach(self.core_y, lerp(*self.CORE_Y, target), rate, dt)

    @property
    def opacity(self) -> float:
        return self.presence.value


class HeartParticles:
    """
    Particles that gather into a heart while the pinch gesture is held.

    Reacts to the instantaneous gesture, not to the macro-state.
    """

    def __init__(self, cfg: SubsystemsConfig, rng: Optional[np.random.Generator] = None):
        self.rng = rng or np.random.default_rng(cfg.seed)
        count = cfg.heart_particle_count
        t = self.rng.random(count) * 2 * np.pi
        hx, hy = heart_curve(t)
        self.targets = np.stack([hx * 0.1, hy * 0.1, np.zeros(count)], axis=1)
        self.positions = (self.rng.random((count, 3)) - 0.5) * np.array([8.0, 8.0, 5.0])
        self.base_scales = self.rng.random(count) * 0.1 + 0.05
        self.speeds = self.rng.random(count) * 0.2 + 0.15
        self.scales = np.zeros(count)

    def update(self, snapshot: FrameSnapshot, dt: float) -> None:
        active = snapshot.hand.gesture == GestureType.PINCH_HEART
        if active:
            self.positions += (self.targets - self.positions) * self.speeds[:, None]
            beat = math.sin(snapshot.elapsed * 8) ** 2 * 0.3 + 1
            self.scales = self.base_scales * beat
        else:
            self.positions += (self.rng.random(self.positions.shape) - 0.5) * 0.2
            self.scales = np.zeros_like(self.base_scales)

    @property
    def visible(self) -> bool:
        return bool(self.scales.any())


class VictorySpotlight:
    """Spotlight that brightens while the victory gesture is held."""

    PEAK_INTENSITY = 5.0

    def __init__(self, rate: float = 6.0):
        self.rate = rate
        self.intensity = 0.0
        self.x = 0.0

    def update(self, snapshot: FrameSnapshot, dt: float) -> None:
        target = self.PEAK_INTENSITY if snapshot.hand.gesture == GestureType.VICTORY else 0.0
        self.intensity = approach(self.intensity, target, self.rate, dt)
        self.x = math.sin(snapshot.elapsed) * 5


def heart_curve(t: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    x = 16 * np.sin(t) ** 3
    y = 13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)
    return x, y


def build_default_subsystems(cfg: SubsystemsConfig):
    """The standard scene: formation parts plus the gesture-reactive effects."""
    rng = np.random.default_rng(cfg.seed)
    return [
        TreeCore(cfg),
        Foliage(cfg, rng),
        Ornaments(cfg, rng),
        Ribbon(cfg),
        HeartParticles(cfg, rng),
        VictorySpotlight(),
    ]

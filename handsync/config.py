"""
Configuration management for the hand gesture formation system.
"""
import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, field, fields

from dotenv import load_dotenv


CONFIG_ENV_VAR = "HANDSYNC_CONFIG"


class ConfigError(KeyError):
    """Raised when a configuration section or key is missing."""


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    index: int = 0
    width: int = 320
    height: int = 240
    fps: int = 30


@dataclass
class TrackerConfig:
    """MediaPipe hand landmarker settings."""
    model_path: str = "models/hand_landmarker.task"
    num_hands: int = 1
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5


@dataclass
class ClassifierConfig:
    """Geometric gesture classifier settings."""
    pinch_threshold: float = 0.05


@dataclass
class StabilizerConfig:
    """Temporal stabilizer settings."""
    smoothing_alpha: float = 0.3
    debounce_frames: int = 2
    min_frame_interval_ms: float = 30.0


@dataclass
class ProgressConfig:
    """Progress synchronizer settings."""
    rate: float = 2.0
    snap_epsilon: float = 0.001
    initial_progress: float = 0.0
    initial_state: str = "ASSEMBLED"


@dataclass
class SubsystemsConfig:
    """Per-subsystem visibility rates and particle counts."""
    foliage_count: int = 1800
    ornament_count: int = 50
    heart_particle_count: int = 400
    tree_height: float = 14.0
    tree_radius: float = 5.0
    foliage_scale_rate: float = 4.0
    ornament_scale_rate: float = 4.0
    ribbon_scale_rate: float = 3.0
    core_presence_rate: float = 6.0
    rotation_rate: float = 5.0
    seed: Optional[int] = None


@dataclass
class DisplayConfig:
    """Display configuration settings."""
    show_preview: bool = True
    show_landmarks: bool = True
    window_name: str = "Hand Formation"
    render_fps: int = 60


@dataclass
class Cfg:
    """Main configuration class."""
    camera: CameraConfig = field(default_factory=CameraConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    stabilizer: StabilizerConfig = field(default_factory=StabilizerConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    subsystems: SubsystemsConfig = field(default_factory=SubsystemsConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    @classmethod
    def defaults(cls) -> "Cfg":
        """Configuration with built-in defaults, no file required."""
        return cls()


def default_config_path() -> Path:
    """Path of the config file used when none is given explicitly."""
    load_dotenv()
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    project_root = Path(__file__).parent.parent
    return project_root / "config.default.yaml"


def load_config(path: Optional[str] = None) -> Cfg:
    """
    Load configuration from YAML file.

    Args:
        path: Path to config file. If None, uses $HANDSYNC_CONFIG or config.default.yaml

    Returns:
        Configuration object with all settings
    """
    config_path = Path(path) if path is not None else default_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    return _dict_to_config(data)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    try:
        section = data[name]
    except KeyError:
        raise ConfigError(f"Missing config section: {name}") from None
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return section


def _require(section: Dict[str, Any], section_name: str, key: str) -> Any:
    try:
        return section[key]
    except KeyError:
        raise ConfigError(f"Missing config key: {section_name}.{key}") from None


def _dict_to_config(data: Dict[str, Any]) -> Cfg:
    """Convert dictionary to configuration object."""
    camera_data = _section(data, 'camera')
    camera = CameraConfig(
        index=_require(camera_data, 'camera', 'index'),
        width=_require(camera_data, 'camera', 'width'),
        height=_require(camera_data, 'camera', 'height'),
        fps=_require(camera_data, 'camera', 'fps')
    )

    tracker_data = _section(data, 'tracker')
    tracker = TrackerConfig(
        model_path=_require(tracker_data, 'tracker', 'model_path'),
        num_hands=tracker_data.get('num_hands', 1),
        min_detection_confidence=_require(tracker_data, 'tracker', 'min_detection_confidence'),
        min_presence_confidence=_require(tracker_data, 'tracker', 'min_presence_confidence'),
        min_tracking_confidence=_require(tracker_data, 'tracker', 'min_tracking_confidence')
    )

    classifier_data = _section(data, 'classifier')
    classifier = ClassifierConfig(
        pinch_threshold=float(_require(classifier_data, 'classifier', 'pinch_threshold'))
    )

    stab_data = _section(data, 'stabilizer')
    stabilizer = StabilizerConfig(
        smoothing_alpha=float(_require(stab_data, 'stabilizer', 'smoothing_alpha')),
        debounce_frames=int(_require(stab_data, 'stabilizer', 'debounce_frames')),
        min_frame_interval_ms=float(_require(stab_data, 'stabilizer', 'min_frame_interval_ms'))
    )
    if stabilizer.debounce_frames < 1:
        raise ValueError("stabilizer.debounce_frames must be >= 1")

    progress_data = _section(data, 'progress')
    progress = ProgressConfig(
        rate=float(_require(progress_data, 'progress', 'rate')),
        snap_epsilon=float(progress_data.get('snap_epsilon', 0.001)),
        initial_progress=float(progress_data.get('initial_progress', 0.0)),
        initial_state=str(progress_data.get('initial_state', 'ASSEMBLED')).upper()
    )

    # Subsystem tuning is optional; anything omitted keeps its default.
    subsystems_data = data.get('subsystems') or {}
    if not isinstance(subsystems_data, dict):
        raise ConfigError("Config section 'subsystems' must be a mapping")
    known = {f.name for f in fields(SubsystemsConfig)}
    for key in subsystems_data:
        if key not in known:
            raise ConfigError(f"Unknown config key: subsystems.{key}")
    subsystems = SubsystemsConfig(**subsystems_data)

    display_data = _section(data, 'display')
    display = DisplayConfig(
        show_preview=_require(display_data, 'display', 'show_preview'),
        show_landmarks=display_data.get('show_landmarks', True),
        window_name=_require(display_data, 'display', 'window_name'),
        render_fps=int(display_data.get('render_fps', 60))
    )

    return Cfg(
        camera=camera,
        tracker=tracker,
        classifier=classifier,
        stabilizer=stabilizer,
        progress=progress,
        subsystems=subsystems,
        display=display
    )

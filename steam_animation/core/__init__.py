from .animation_config import AnimationConfig, ConfigStore, RandomizeMode
from .animation_selector import AnimationSelector
from .cache_janitor import CacheJanitor, SweepResult
from .errors import (
    AnimationDaemonError,
    InstanceConflictError,
    MonitorUnavailableError,
    MountError,
    SourceMissingError,
    TranscodeError,
)
from .event_monitor import DaemonEvent, DaemonState, EventMonitor
from .instance_lock import InstanceLock, running_pid
from .mount_manager import MountManager
from .targets import ALL_TARGETS, AnimationTarget
from .transcoder import Transcoder, TranscodeResult

__all__ = [
    'AnimationConfig',
    'ConfigStore',
    'RandomizeMode',
    'AnimationSelector',
    'CacheJanitor',
    'SweepResult',
    'AnimationDaemonError',
    'InstanceConflictError',
    'MonitorUnavailableError',
    'MountError',
    'SourceMissingError',
    'TranscodeError',
    'DaemonEvent',
    'DaemonState',
    'EventMonitor',
    'InstanceLock',
    'running_pid',
    'MountManager',
    'ALL_TARGETS',
    'AnimationTarget',
    'Transcoder',
    'TranscodeResult',
]

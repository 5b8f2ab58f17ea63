"""
Audition Core Module

This module contains the core audio logic:
- AudioControlSession: Parameter/lifecycle mediator for one source
- AudioEngine: Output device, decoding and node factories
- Nodes: Player, pitch shift, reverb and equalizer graph nodes
- Effects: Signal helpers the nodes delegate to
"""
from .session import AudioControlSession, EffectChain
from .engine import AudioEngine, get_default_engine, load_audio
from .nodes import (
    AudioNode,
    Destination,
    EqualizerNode,
    PitchShiftNode,
    PlayerNode,
    ReverbNode
)
from .config import (
    AUDIO_CONFIG,
    EQUALIZER_CONFIG,
    PARAMETER_LIMITS,
    PITCH_SHIFT_CONFIG,
    REVERB_CONFIG,
    EngineState,
    PlaybackState
)
from .errors import (
    EngineError,
    EngineUnlockError,
    InitError,
    LoadError,
    NodeDisposedError,
    NotReadyError,
    ParameterRangeError,
    PlaybackError,
    RegenerationError,
    SessionError
)
from .types import (
    EqualizerBand,
    EqualizerSettings,
    OperationResult,
    SessionParams,
    SessionSnapshot
)
from . import effects

__all__ = [
    # Main classes
    'AudioControlSession',
    'EffectChain',
    'AudioEngine',
    'get_default_engine',
    'load_audio',
    # Nodes
    'AudioNode',
    'Destination',
    'EqualizerNode',
    'PitchShiftNode',
    'PlayerNode',
    'ReverbNode',
    # Config
    'AUDIO_CONFIG',
    'EQUALIZER_CONFIG',
    'PARAMETER_LIMITS',
    'PITCH_SHIFT_CONFIG',
    'REVERB_CONFIG',
    'EngineState',
    'PlaybackState',
    # Errors
    'EngineError',
    'EngineUnlockError',
    'InitError',
    'LoadError',
    'NodeDisposedError',
    'NotReadyError',
    'ParameterRangeError',
    'PlaybackError',
    'RegenerationError',
    'SessionError',
    # Types
    'EqualizerBand',
    'EqualizerSettings',
    'OperationResult',
    'SessionParams',
    'SessionSnapshot',
    # Submodules
    'effects',
]

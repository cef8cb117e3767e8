
from utils.admission import AdmissionGate
from utils.embedder import Embedder
from utils.engine import EngineError, PlaybackEngine
from utils.playback import PlaybackOutcome, PlaybackService
from utils.retry import RetryConfig, RetryExecutor, classify_error

__all__ = [
    "AdmissionGate",
    "Embedder",
    "EngineError",
    "PlaybackEngine",
    "PlaybackOutcome",
    "PlaybackService",
    "RetryConfig",
    "RetryExecutor",
    "classify_error",
]

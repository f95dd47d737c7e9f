from .api_client import ApiError, SessionApi
from .executor import QUOTA_NOTICE, InvalidTransition, TranscriptEntry, TurnExecutor, TurnPhase
from .speech import NoSpeech, SpeechCapability, split_for_speech
from .timer import AnswerTimer

__all__ = [
    "AnswerTimer",
    "ApiError",
    "InvalidTransition",
    "NoSpeech",
    "QUOTA_NOTICE",
    "SessionApi",
    "SpeechCapability",
    "TranscriptEntry",
    "TurnExecutor",
    "TurnPhase",
    "split_for_speech",
]

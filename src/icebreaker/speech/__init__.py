"""
Speech input and output for Icebreaker.
"""

from icebreaker.speech.input import SpeechInputError, SpeechInputProvider, WhisperSpeechInput
from icebreaker.speech.output import SpeechOutputError, SpeechOutputProvider, SpeechPlayer, SpeechReport
from icebreaker.speech.sentences import split_sentences
from icebreaker.speech.voicevox import VoicevoxSpeechOutput

__all__ = [
    "SpeechInputError",
    "SpeechInputProvider",
    "SpeechOutputError",
    "SpeechOutputProvider",
    "SpeechPlayer",
    "SpeechReport",
    "VoicevoxSpeechOutput",
    "WhisperSpeechInput",
    "split_sentences",
]

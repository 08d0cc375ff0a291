"""VoiceDesk: voice recording capture, playback and library."""

__version__ = "0.1.0"

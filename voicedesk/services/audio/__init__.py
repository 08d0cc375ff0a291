"""Audio capture, clip encoding and playback."""

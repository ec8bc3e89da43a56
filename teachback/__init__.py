"""Voice tutoring backend: ElevenLabs relay and study-note generation."""

__version__ = "1.0.0"

"""LiveLingo - real-time meeting transcription with contextual translation."""

__version__ = "0.1.0"

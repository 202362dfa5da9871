"""Core — framework-free error types shared by every layer."""

"""nimproxy — OpenAI-compatible gateway in front of NVIDIA NIM."""

__version__ = "0.1.0"

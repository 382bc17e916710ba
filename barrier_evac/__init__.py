"""Grid evacuation simulator for comparing barrier layouts."""

__version__ = "0.1.0"

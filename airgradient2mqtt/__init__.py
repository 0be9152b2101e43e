"""Bridge AirGradient sensors' cloud polling protocol to MQTT."""

__version__ = "1.0.0"

"""depwise - dependency risk assessment and safer-alternative recommendations."""

__version__ = "0.3.0"

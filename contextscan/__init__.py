"""contextscan: static codebase scanner producing grounding artifacts."""

__version__ = "0.4.0"

"""orderwatch: order snapshot change tracking with bounded history."""

__version__ = "0.1.0"

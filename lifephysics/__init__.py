"""Life Physics: a task tracker with RPG-style progression."""

__version__ = "1.0.0"

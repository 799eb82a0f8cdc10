"""taskflow: FSM-driven task management core."""

__version__ = "0.3.0"

"""tasky - a personal task manager with drag-and-drop ordering."""

__version__ = "0.1.0"

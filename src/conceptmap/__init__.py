"""conceptmap: editable concept maps with undo/redo and durable recovery."""

__version__ = "0.3.0"

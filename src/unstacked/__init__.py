"""Keep stacks of dependent git commits synchronized, signed and published."""

__version__ = "0.1.0"

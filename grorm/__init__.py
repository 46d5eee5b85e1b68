"""Value types, SQL query builders and lightweight database protocol clients."""

__version__ = "0.1.1"
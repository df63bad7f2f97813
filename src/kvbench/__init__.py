"""kvbench — compare key-value clients under identical multi-process workloads."""

__version__ = "0.1.0"

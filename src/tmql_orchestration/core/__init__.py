"""Core orchestration: sources, models, graph, validation, scheduling and execution."""

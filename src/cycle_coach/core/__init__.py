"""Session engine: models, timers, selection, aggregation and progression."""

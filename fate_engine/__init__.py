"""Life-simulation engine: turns, time, memory and narrative for one simulated life."""

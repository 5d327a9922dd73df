"""lingobus: Event-driven image translation pipeline."""

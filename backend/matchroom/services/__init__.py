"""Session domain services: state machine, prompt pool, store, generation
and broadcast.

Imported by the HTTP blueprint and socket handlers, keeping transport
concerns separated from the game-session mechanics.
"""

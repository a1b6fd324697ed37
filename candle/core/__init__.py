"""Core auction engine: configuration, errors, collaborators, state machine."""

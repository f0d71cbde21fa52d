"""CLI module for automaton."""

"""Timing primitives: the incremental timer, the exercise scheduler, sessions and steps."""

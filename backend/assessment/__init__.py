"""Assessment attempt engine.

This package samples question sessions, runs timed attempts, grades the
six supported question kinds with partial credit and aggregates attempt
records. The HTTP application in `main` and the SQLModel persistence in
`models`/`repositories` are thin adapters around the pure modules
`sampler`, `session`, `grading` and `results`.
"""

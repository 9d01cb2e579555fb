"""Publishing of tracked notes to GitHub.

Modules:

- ``models`` -- files, outcomes, and reports of one publish attempt.
- ``transaction`` -- branch-create + sequential-commit protocol.
- ``orchestrator`` -- end-to-end use case updating the tracking index.
- ``reporter`` -- text and JSON rendering of results.
"""

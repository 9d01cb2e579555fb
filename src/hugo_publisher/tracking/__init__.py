"""Change tracking for publishable notes.

Modules:

- ``models`` -- tracked-note records, publication events, snapshot entries.
- ``hashing`` -- content and metadata fingerprints.
- ``frontmatter`` -- lenient ``---`` header parser.
- ``index`` -- in-memory tracking index.
- ``state`` -- on-disk snapshot persistence.
- ``engine`` -- reconciliation of the vault, the index, and the snapshot.
"""

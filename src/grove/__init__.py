"""Branch hierarchy workflows on top of git.

Features:
- Parent/child/ancestor relations between branches, stored in git config
- Perennial branches and a main branch
- Sync state of local branches against their origin tracking branches
- Author selection for squash commits
- Dry-run mode for commands that change the repository
"""

__version__ = "0.1.0"

"""Git branching workflow tool.

Features:
- Integrate feature branches into shared aggregate branches (prototype, staging)
- Reset ("nuke") an aggregate branch to its last known good snapshot
- Release a feature branch to production through the base branch
- Clean up branches already merged into the base branch
- Open review requests and post work-log messages
"""

__version__ = "0.1.0"

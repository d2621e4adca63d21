"""
Compose Autodeploy - self-updating deployment agent for two-service compose stacks.

Installs the container runtime, keeps a working copy of the source repository
in sync, and rebuilds the frontend/backend stack only when the remote branch
moved past the last deployed commit.
"""

__version__ = "1.2.0"

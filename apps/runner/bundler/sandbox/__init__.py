"""Sandbox module for isolated workspaces and subprocess execution."""

from bundler.sandbox.checkout import clone_repo, checkout_revision, read_head_revision
from bundler.sandbox.process import run_command, tool_available
from bundler.sandbox.workspace import Workspace, open_workspace

__all__ = [
    "clone_repo",
    "checkout_revision",
    "read_head_revision",
    "run_command",
    "tool_available",
    "Workspace",
    "open_workspace",
]

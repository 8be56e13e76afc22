"""Pipeline stages, in execution order."""

from bundler.stages.bundle import bundle_entrypoint
from bundler.stages.context import BuildContext
from bundler.stages.dependencies import install_dependencies
from bundler.stages.entrypoint import resolve_entrypoint
from bundler.stages.fetch import fetch_source
from bundler.stages.typecheck import run_typecheck

__all__ = [
    "BuildContext",
    "fetch_source",
    "install_dependencies",
    "run_typecheck",
    "resolve_entrypoint",
    "bundle_entrypoint",
]

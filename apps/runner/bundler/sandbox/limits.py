"""Resource limits for build subprocesses.

Provides a `preexec_fn`-compatible function that caps each child's
address space and CPU time before exec. The wall-clock timeout in the
process runner is the primary guard; these limits stop a single runaway
install or bundler from exhausting the host.

Node.js reserves several GB of virtual address space at startup, and
WebAssembly-based tools (esbuild's wasm build, SWC) map more on top, so
the address-space default is generous.

Environment overrides:
  - BUNDLER_RLIMIT_AS_BYTES: integer bytes; 0 or negative disables the cap
  - BUNDLER_RLIMIT_CPU_SECONDS: integer seconds of CPU time per process

No-op on Windows, where the `resource` module is unavailable.
"""

import os
import sys
from typing import Optional

_DEFAULT_MEM_LIMIT_BYTES = 12 * 1024 * 1024 * 1024  # 12 GB
_DEFAULT_CPU_LIMIT_SECONDS = 600

_MEM_LIMIT_ENV = "BUNDLER_RLIMIT_AS_BYTES"
_CPU_LIMIT_ENV = "BUNDLER_RLIMIT_CPU_SECONDS"


def _parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    return int(raw.strip())


def resolve_memory_limit_bytes() -> Optional[int]:
    """Return the address-space cap in bytes, or None when disabled."""
    override = _parse_int(os.environ.get(_MEM_LIMIT_ENV))
    if override is None:
        return _DEFAULT_MEM_LIMIT_BYTES
    if override <= 0:
        return None
    return override


def resolve_cpu_limit_seconds() -> int:
    override = _parse_int(os.environ.get(_CPU_LIMIT_ENV))
    if override is None or override <= 0:
        return _DEFAULT_CPU_LIMIT_SECONDS
    return override


def apply_resource_limits() -> None:
    """Set per-process resource limits before exec. No-op on Windows.

    Runs in the child after fork() and before exec(); passed as
    `preexec_fn` by the process runner.
    """
    if sys.platform == "win32":
        return

    try:
        import resource

        mem_limit = resolve_memory_limit_bytes()
        if mem_limit:
            resource.setrlimit(resource.RLIMIT_AS, (mem_limit, resource.RLIM_INFINITY))

        cpu_limit = resolve_cpu_limit_seconds()
        resource.setrlimit(resource.RLIMIT_CPU, (cpu_limit, resource.RLIM_INFINITY))

    except (ImportError, ValueError, OSError) as exc:
        import logging
        logging.getLogger(__name__).warning(
            "Failed to apply resource limits: %s", exc
        )

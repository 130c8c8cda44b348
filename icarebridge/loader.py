"""Bootstrap: start a guest runtime, make the statistical package importable, return ICare."""

from __future__ import annotations

from loguru import logger

from icarebridge.config.schema import Config
from icarebridge.facade import ICare
from icarebridge.runtime.base import GuestRuntime
from icarebridge.runtime.subprocess_runtime import SubprocessRuntime
from icarebridge.runtime.values import error_message
from icarebridge.transport import HttpTransport, ResourceTransport
from icarebridge.utils.exceptions import GuestRuntimeError


def make_runtime(config: Config) -> SubprocessRuntime:
    """Subprocess runtime configured from ``config.runtime``."""
    rc = config.runtime
    return SubprocessRuntime(
        python=rc.python,
        workspace=config.workspace_path,
        start_timeout=rc.start_timeout,
        install_timeout=rc.install_timeout,
        max_message_bytes=rc.max_message_bytes,
    )


def make_transport(config: Config) -> HttpTransport:
    fc = config.fetch
    return HttpTransport(
        timeout=fc.timeout,
        user_agent=fc.user_agent,
        follow_redirects=fc.follow_redirects,
        max_redirects=fc.max_redirects,
    )


async def load_icare(
    config: Config | None = None,
    *,
    runtime: GuestRuntime | None = None,
    transport: ResourceTransport | None = None,
) -> ICare:
    """
    Initialize the bridge.

    Starts the runtime, installs ``package==version`` when configured, imports the
    guest module and reads its ``__version__``. The runtime is closed again if any
    step fails.
    """
    cfg = config or Config()
    rt = runtime or make_runtime(cfg)
    module = cfg.runtime.guest_module
    try:
        await rt.start()
        if cfg.runtime.install_package:
            await rt.install_package(cfg.runtime.requirement)
        raw = await rt.run(f"import {module}\ngetattr({module}, '__version__', None)")
        message = error_message(raw)
        if message is not None:
            raise GuestRuntimeError(f"Could not import '{module}' in the guest: {message}", rt.runtime_id)
    except BaseException:
        await rt.close()
        raise
    version = raw if isinstance(raw, str) else None
    logger.info("Loaded {} {} in {} runtime", module, version or "(unknown version)", rt.runtime_id)
    return ICare(
        rt,
        transport or make_transport(cfg),
        guest_module=module,
        serialize_invocations=cfg.bridge.serialize_invocations,
        version=version,
    )

"""Dependency injection for the MIRROR memory core.

Uses scitrera-app-framework plugin pattern for service initialization.
Services are lazily initialized on first access via get_extension().
"""
import logging
from logging import Logger
from typing import Callable

from scitrera_app_framework import (
    Variables, get_variables, get_logger, init_framework_desktop,
    async_plugins_ready, async_plugins_stopping
)
from .config import MIRROR_DATA_DIR

# global preconfigure hooks (not specific to variables instance)
_preconfigure_hooks: list[Callable[[Variables], None]] = []


def add_preconfigure_hook(hook: Callable[[Variables], None]) -> None:
    """Run ``hook(v)`` during preconfigure, e.g. to register host-application plugins."""
    _preconfigure_hooks.append(hook)


# noinspection PyTypeHints
def preconfigure(v: Variables = None, test_mode: bool = False, test_logger: Logger = None) -> (Variables, dict):
    """ Pre-configure the framework """
    from scitrera_app_framework import register_package_plugins
    from . import services  # noqa: F401

    # handle test mode
    additional_kwargs = {} if not test_mode else {
        'fault_handler': False,
        'fixed_logger': test_logger,
        'pyroscope': False,
        'shutdown_hooks': False,
    }

    # init framework (has internal protection against multiple invocations)
    v: Variables = init_framework_desktop(
        'mirror-memory',
        base_plugins=False,
        stateful_chdir=True,  # change working directory to stateful root
        stateful_root_env_key=MIRROR_DATA_DIR,  # relative sqlite paths resolve under MIRROR_DATA_DIR
        async_auto_enabled=False,  # manage async plugin lifecycle hooks manually
        v=v,
        **additional_kwargs
    )

    logging.getLogger('aiosqlite').setLevel(logging.WARNING)
    logging.getLogger('httpcore.http11').setLevel(logging.WARNING)
    logging.getLogger('httpcore.connection').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('openai._base_client').setLevel(logging.WARNING)
    logging.getLogger('anthropic._base_client').setLevel(logging.WARNING)

    # avoid duplicate invocations of preconfigure()
    if v.get('__preconfigure_complete__', default=False):
        return v, services

    logger = get_logger(v)

    logger.debug('Registering core services')
    register_package_plugins(services.__package__, v, recursive=True)

    # handle preconfiguration hooks
    global _preconfigure_hooks
    if v.get('__preconfigure_hooks_installed__', default=0) == (lph := len(_preconfigure_hooks)):
        v.set('__preconfigure_complete__', True)
        return v, services

    for hook in _preconfigure_hooks:
        hook(v)

    v.set('__preconfigure_hooks_installed__', lph)
    logger.debug('Installed %d preconfiguration hooks', lph)

    v.set('__preconfigure_complete__', True)
    return v, services


async def initialize_services(v: Variables = None) -> Variables:
    """Initialize all services (connects storage)."""

    # ensure preconfigured
    v, services = preconfigure(v)
    logger = get_logger(v)

    logger.debug("Initializing services")
    from scitrera_app_framework.core.plugins import init_all_plugins
    init_all_plugins(v, async_enabled=False)  # handle sync part
    await async_plugins_ready(v)  # handle async part with sequencing managed

    return v


async def shutdown_services(v: Variables = None) -> None:
    """Shutdown all services (disconnects storage)."""

    v = get_variables(v)
    logger = get_logger(v)

    logger.debug("Shutting down services")
    await async_plugins_stopping(v)

    from scitrera_app_framework.core.plugins import shutdown_all_plugins
    shutdown_all_plugins(v)

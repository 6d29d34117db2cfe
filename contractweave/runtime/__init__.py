"""
Runtime side of contract enforcement.

Generated sources import CaptureStore, UNSET and implementation_default from
here; in-memory wrappers are built with build_wrapper/install_type.
"""

from contractweave.runtime.capture import CaptureStore, snapshot
from contractweave.runtime.defaults import UNSET, implementation_default
from contractweave.runtime.enforcement import (
    CONTRACT_ATTR,
    Enforcer,
    build_wrapper,
    install_type,
    publish_function,
)

__all__ = [
    'CaptureStore',
    'snapshot',
    'UNSET',
    'implementation_default',
    'CONTRACT_ATTR',
    'Enforcer',
    'build_wrapper',
    'install_type',
    'publish_function',
]

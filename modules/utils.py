"""
Shared helpers for the platform modules
"""

import functools
import traceback

import pulumi
from typing import Any, Callable, Optional


def run_program(program: Callable[..., Any]) -> Callable[..., Any]:
    """
    Wrap a Pulumi program so unexpected failures are logged with a stack trace

    The exception is re-raised after logging so the Pulumi run loop reports
    a failed update instead of a bare crash.

    Args:
        program: Function that declares the stack's resources

    Returns:
        Wrapped function
    """
    @functools.wraps(program)
    def wrapper(*args, **kwargs):
        try:
            return program(*args, **kwargs)
        except Exception as e:
            pulumi.log.error(f"pulumi program failed: {e}\n{traceback.format_exc()}")
            raise

    return wrapper


def import_transformation(import_id: Optional[str]) -> Optional[Callable]:
    """
    Build a ConfigFile transformation that adopts an existing object

    Args:
        import_id: Kubernetes id ("namespace/name") of the object to import

    Returns:
        Transformation function, or None when there is nothing to import
    """
    if not import_id:
        return None

    def transform(obj: dict, opts: pulumi.ResourceOptions):
        opts.import_ = import_id

    return transform

"""Helpers shared by unit and feature tests."""

from __future__ import annotations

import asyncio
import typing as typ


def run_async[T](coro_func: typ.Callable[[], typ.Coroutine[typ.Any, typ.Any, T]]) -> T:
    """Run ``coro_func`` to completion on a fresh event loop.

    pytest-bdd step functions are synchronous, so feature steps wrap their
    async work in a zero-argument coroutine function and call this.
    """
    return asyncio.run(coro_func())

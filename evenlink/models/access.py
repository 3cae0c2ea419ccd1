"""Outcome of a read that the OS may refuse for lack of authorization."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar, Union

from evenlink.errors import BluetoothAccessError

T = TypeVar("T")


@dataclass(frozen=True)
class Authorized(Generic[T]):
    value: T


@dataclass(frozen=True)
class Denied:
    reason: str = ""


Access = Union[Authorized[T], Denied]


async def guard(read: Callable[[], Awaitable[T]]) -> Access[T]:
    """Run ``read`` and fold an authorization refusal into :class:`Denied`.

    Any other exception propagates unchanged.
    """
    try:
        return Authorized(await read())
    except BluetoothAccessError as exc:
        return Denied(str(exc))


def guard_sync(read: Callable[[], T]) -> Access[T]:
    try:
        return Authorized(read())
    except BluetoothAccessError as exc:
        return Denied(str(exc))

"""Undo/redo over immutable Design snapshots.

All transitions are pure: they take a HistoryState and return a new one.
The designer session holds the single current value and replaces it
wholesale on every change.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class HistoryState(Generic[T]):
    """
    Attributes:
        past: Prior snapshots, oldest first.
        present: The current snapshot.
        future: Undone snapshots, next redo first.
    """
    past: Tuple[T, ...]
    present: T
    future: Tuple[T, ...] = ()


def init(present: T) -> HistoryState[T]:
    return HistoryState(past=(), present=present, future=())


def push(state: HistoryState[T], new_present: T) -> HistoryState[T]:
    """History-tracked change: the old present becomes the newest past frame."""
    return HistoryState(past=state.past + (state.present,), present=new_present, future=())


def replace_present(state: HistoryState[T], new_present: T) -> HistoryState[T]:
    """Transient change: swap the present without touching past or future."""
    return HistoryState(past=state.past, present=new_present, future=state.future)


def commit(state: HistoryState[T], base: T) -> HistoryState[T]:
    """Record the transient changes made since `base` as one undo frame.

    `base` is the present as it was before the transient sequence began.
    """
    if base == state.present:
        return state
    return HistoryState(past=state.past + (base,), present=state.present, future=())


def undo(state: HistoryState[T]) -> HistoryState[T]:
    if not state.past:
        return state
    return HistoryState(past=state.past[:-1], present=state.past[-1], future=(state.present,) + state.future)


def redo(state: HistoryState[T]) -> HistoryState[T]:
    if not state.future:
        return state
    return HistoryState(past=state.past + (state.present,), present=state.future[0], future=state.future[1:])


def can_undo(state: HistoryState) -> bool:
    return bool(state.past)


def can_redo(state: HistoryState) -> bool:
    return bool(state.future)


def reset(present: T) -> HistoryState[T]:
    return init(present)

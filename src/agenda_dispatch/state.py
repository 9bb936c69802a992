"""Cursor chain construction and rollback replay."""
import logging
from typing import Any, List, Tuple

from agenda_dispatch.models import INIT_ACTION, Cursor, Reducer

logger = logging.getLogger("agenda_dispatch.state")


def create_state(reducer: Reducer, init: Any = None) -> Cursor:
    """Build the genesis Cursor by asking ``reducer`` for its initial state.

    Raises:
        Exception: Whatever ``reducer`` raises; no Cursor is created.
    """
    return Cursor(action=INIT_ACTION, state=reducer(init, INIT_ACTION))


def do_next(cursor: Cursor, reducer: Reducer, action: Any, origin: Any = None) -> Cursor:
    """Apply ``action`` on top of ``cursor`` and return the new head."""
    return Cursor(
        action=action,
        state=reducer(cursor.state, action),
        previous=cursor,
        origin=origin,
    )


def segment(head: Cursor, anchor: Cursor) -> Tuple[Cursor, List[Cursor]]:
    """Split the chain ending at ``head`` at ``anchor``.

    Returns ``(base, nodes)`` where ``nodes`` are the Cursors after ``base``
    in chronological order. ``base`` is ``anchor`` when it is still part of
    the chain, otherwise the genesis Cursor (an earlier rollback rewrote the
    segment that contained it).
    """
    nodes: List[Cursor] = []
    node = head
    while node is not anchor and node.previous is not None:
        nodes.append(node)
        node = node.previous
    nodes.reverse()
    return node, nodes


def filter_actions(
    head: Cursor,
    anchor: Cursor,
    reducer: Reducer,
    origin: Any,
) -> Cursor:
    """Replay the chain from ``anchor`` to ``head`` without ``origin``'s Cursors.

    Only Cursors tagged with ``origin`` are removed, so the walk may safely
    fall back to genesis: nodes contributed by any other fold are re-applied
    in their original relative order, keeping their own tag. A kept action
    that now raises on the rewritten state is dropped from the history and
    logged.

    Returns:
        The new head Cursor. Cursors before the first removed one are reused
        unchanged; when nothing is removed ``head`` itself is returned.
    """
    base, nodes = segment(head, anchor)
    cursor = base
    rewriting = False
    for node in nodes:
        if node.origin is origin:
            rewriting = True
            continue
        if not rewriting:
            cursor = node
            continue
        try:
            cursor = do_next(cursor, reducer, node.action, node.origin)
        except Exception as exc:
            logger.warning(
                "Dropping action %r: reducer failed while replaying it after rollback: %s",
                node.action, exc,
            )
    return cursor


def history(head: Cursor) -> List[Cursor]:
    """All Cursors from genesis to ``head``, oldest first."""
    nodes: List[Cursor] = []
    node = head
    while node is not None:
        nodes.append(node)
        node = node.previous
    nodes.reverse()
    return nodes

"""Sweep that removes every todo marked done."""

from __future__ import annotations

import logging

from .context import ServiceContext
from .repositories import Transaction

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def clean_todos(context: ServiceContext) -> int:
    """
    Delete all todos with done == True and return how many were deleted.

    The matching ids come from one query; todos finished after it are left
    for the next sweep. Deletes are committed together: if the transaction
    fails nothing is deleted and the error propagates.
    """
    collection = context.todos()
    finished = await collection.query({"done": True})
    if not finished:
        logger.debug("Cleanup found no finished todos")
        return 0

    async def _delete_all(txn: Transaction) -> None:
        for doc in finished:
            await collection.doc(doc["id"]).delete(txn)

    await context.repository.run_in_transaction(_delete_all)
    logger.info("Cleanup deleted %d finished todos", len(finished))
    return len(finished)

"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.notekit.db.engine import get_session
from backend.notekit.db.repositories import NoteStore
from backend.notekit.db.sql_repositories import SqlNoteStore


async def get_note_store(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> NoteStore:
    """FastAPI dependency returning the SQL-backed note store."""
    return SqlNoteStore(session)

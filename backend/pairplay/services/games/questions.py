"""Cursor over an imported question outline.

The cursor walks chapters in order and the questions inside each chapter
in order. It is independent of manually typed questions: the host can mix
both, the cursor only moves when asked to.
"""
from __future__ import annotations

import logging
from typing import Optional

from .errors import StateConflictError
from .state import Room


logger = logging.getLogger(__name__)


def set_imported_questions(room: Room, outline: dict) -> None:
    room.imported_questions = outline
    room.question_cursor = None
    logger.info(f"Questions imported into {room.room_code}: {outline.get('title')}")


def clear_imported_questions(room: Room) -> None:
    room.imported_questions = None
    room.question_cursor = None


def _chapters(room: Room) -> list:
    if not room.imported_questions:
        raise StateConflictError('No imported questions')
    return room.imported_questions.get('chapters') or []


def _describe(room: Room, ci: int, qi: int) -> dict:
    chapters = room.imported_questions['chapters']
    chapter = chapters[ci]
    return {
        'chapter_index': ci,
        'question_index': qi,
        'question': chapter['questions'][qi],
        'chapter': {'title': chapter.get('title'), 'question_count': len(chapter['questions'])},
        'is_new_chapter': qi == 0,
        'is_last_question': _next_position(chapters, ci, qi) is None,
    }


def _next_position(chapters, ci, qi):
    if qi + 1 < len(chapters[ci]['questions']):
        return ci, qi + 1
    for nci in range(ci + 1, len(chapters)):
        if chapters[nci]['questions']:
            return nci, 0
    return None


def _prev_position(chapters, ci, qi):
    if qi > 0:
        return ci, qi - 1
    for pci in range(ci - 1, -1, -1):
        if chapters[pci]['questions']:
            return pci, len(chapters[pci]['questions']) - 1
    return None


def _first_position(chapters):
    for ci, chapter in enumerate(chapters):
        if chapter.get('questions'):
            return ci, 0
    return None


def advance_cursor(room: Room) -> Optional[dict]:
    """Move to the next question. Returns None, leaving the cursor, when exhausted."""
    chapters = _chapters(room)
    cursor = room.question_cursor
    if cursor is None:
        position = _first_position(chapters)
    else:
        position = _next_position(chapters, cursor['chapter_index'], cursor['question_index'])
    if position is None:
        return None
    room.question_cursor = {'chapter_index': position[0], 'question_index': position[1]}
    return _describe(room, *position)


def retreat_cursor(room: Room) -> Optional[dict]:
    chapters = _chapters(room)
    cursor = room.question_cursor
    if cursor is None:
        return None
    position = _prev_position(chapters, cursor['chapter_index'], cursor['question_index'])
    if position is None:
        return None
    room.question_cursor = {'chapter_index': position[0], 'question_index': position[1]}
    return _describe(room, *position)


def get_current_question(room: Room) -> Optional[dict]:
    if not room.imported_questions or room.question_cursor is None:
        return None
    cursor = room.question_cursor
    return _describe(room, cursor['chapter_index'], cursor['question_index'])


def can_advance_cursor(room: Room) -> bool:
    if not room.imported_questions:
        return False
    chapters = room.imported_questions.get('chapters') or []
    cursor = room.question_cursor
    if cursor is None:
        return _first_position(chapters) is not None
    return _next_position(chapters, cursor['chapter_index'], cursor['question_index']) is not None


def can_retreat_cursor(room: Room) -> bool:
    if not room.imported_questions or room.question_cursor is None:
        return False
    cursor = room.question_cursor
    chapters = room.imported_questions.get('chapters') or []
    return _prev_position(chapters, cursor['chapter_index'], cursor['question_index']) is not None

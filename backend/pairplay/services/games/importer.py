"""Question-set import: parse and validate uploaded JSON outlines.

A question set looks like::

    {"title": "Date night",
     "chapters": [{"title": "Warm up",
                   "questions": [{"question": "Who snores?", "variant": "binary"}]}]}

``validate_question_set`` fills in defaults (``variant`` and
``answer_for_both``) on the questions it accepts.
"""
import json

from .rounds import MAX_CHOICES, MIN_CHOICES
from .state import VARIANTS


BINARY_OPTIONS_COUNT = 2


def parse_json(content):
    try:
        return {'success': True, 'data': json.loads(content)}
    except (TypeError, ValueError) as e:
        return {'success': False, 'error': f'Invalid JSON: {e}'}


def _invalid(error):
    return {'valid': False, 'error': error}


def _validate_question(question, prefix):
    if not isinstance(question, dict):
        return f'{prefix}: Invalid question structure'
    text = question.get('question')
    if not text or not isinstance(text, str):
        return f'{prefix}: Missing or invalid question text'

    variant = question.get('variant') or 'open_ended'
    if variant not in VARIANTS:
        return f'{prefix}: Invalid variant "{variant}". Must be one of: {", ".join(VARIANTS)}'

    options = question.get('options')
    if variant == 'multiple_choice':
        if not isinstance(options, list):
            return f'{prefix}: Multiple choice requires an options array'
        if not MIN_CHOICES <= len(options) <= MAX_CHOICES:
            return f'{prefix}: Multiple choice requires {MIN_CHOICES}-{MAX_CHOICES} options, got {len(options)}'
        for i, option in enumerate(options, start=1):
            if not isinstance(option, str) or not option.strip():
                return f'{prefix}: Option {i} must be a non-empty string'
    elif variant == 'binary':
        # binary falls back to the generic two-person labels when omitted
        if options is not None and (not isinstance(options, list) or len(options) != BINARY_OPTIONS_COUNT):
            return f'{prefix}: Binary requires exactly {BINARY_OPTIONS_COUNT} options'
    elif variant == 'open_ended':
        if options:
            return f'{prefix}: Open ended questions should not have options'
    elif variant == 'pool_selection':
        if options:
            return f'{prefix}: Pool selection questions should not have options'

    question['variant'] = variant
    if 'answer_for_both' not in question:
        question['answer_for_both'] = bool(question.pop('answerForBoth', False))
    return None


def validate_question_set(data):
    if not isinstance(data, dict):
        return _invalid('Question set must be an object')
    if not data.get('title') or not isinstance(data['title'], str):
        return _invalid('Question set must have a title string')
    chapters = data.get('chapters')
    if not isinstance(chapters, list) or not chapters:
        return _invalid('Question set must have at least one chapter')

    for ci, chapter in enumerate(chapters, start=1):
        prefix = f'Chapter {ci}'
        if not isinstance(chapter, dict):
            return _invalid(f'{prefix}: Invalid chapter structure')
        if not chapter.get('title') or not isinstance(chapter['title'], str):
            return _invalid(f'{prefix}: Missing or invalid title')
        questions = chapter.get('questions')
        if not isinstance(questions, list) or not questions:
            return _invalid(f"{prefix} ({chapter['title']}): Must have at least one question")
        for qi, question in enumerate(questions, start=1):
            error = _validate_question(question, f'{prefix}, Question {qi}')
            if error:
                return _invalid(error)

    return {'valid': True}


def count_questions(data):
    return sum(len(chapter['questions']) for chapter in data['chapters'])

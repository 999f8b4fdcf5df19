import random

import pytest

from pairplay.services.games import roster, rounds, scoring
from pairplay.services.games.errors import StateConflictError, ValidationError


SIDS = ('player1-socket', 'player2-socket', 'player3-socket', 'player4-socket')


def _answer_all(room, *texts):
    for sid, text in zip(SIDS, texts):
        rounds.submit_answer(room, sid, text, 1000)


@pytest.fixture()
def pool_round(started_room):
    rounds.start_round(started_room, 'Favorite food?', 'pool_selection')
    _answer_all(started_room, 'Pizza', 'Sushi', 'Tacos', 'Pasta')
    return started_room


@pytest.fixture()
def selecting(pool_round):
    rounds.start_selecting(pool_round)
    return pool_round


def test_pool_round_initial_state(started_room):
    rnd = rounds.start_round(started_room, 'q', 'pool_selection')
    assert rnd.options is None
    assert rnd.picks == {} and rnd.picks_submitted == []
    assert rnd.answer_pool is None


def test_empty_answer_allowed_only_in_pool_rounds(started_room):
    rounds.start_round(started_room, 'q', 'pool_selection')
    rounds.submit_answer(started_room, 'player1-socket', '')
    assert started_room.current_round.answers['Alice'].text == ''
    rounds.start_round(started_room, 'q2')
    with pytest.raises(ValidationError):
        rounds.submit_answer(started_room, 'player1-socket', '')


def test_start_selecting(pool_round):
    rounds.start_selecting(pool_round)
    assert pool_round.current_round.status == 'selecting'
    with pytest.raises(StateConflictError, match='Round not in answering phase'):
        rounds.start_selecting(pool_round)


def test_submit_pick_stores_by_name(selecting):
    scoring.submit_pick(selecting, 'player1-socket', 'Sushi')
    scoring.submit_pick(selecting, 'player1-socket', 'sushi ')
    rnd = selecting.current_round
    assert rnd.picks['Alice'] == 'sushi '
    assert rnd.picks_submitted == ['Alice']


def test_submit_pick_rejections(pool_round):
    with pytest.raises(StateConflictError, match='Round not in selecting phase'):
        scoring.submit_pick(pool_round, 'player1-socket', 'Sushi')
    rounds.start_selecting(pool_round)
    with pytest.raises(StateConflictError, match='Cannot pick your own answer'):
        scoring.submit_pick(pool_round, 'player1-socket', 'PIZZA')
    with pytest.raises(ValidationError, match='Invalid pick: answer not in pool'):
        scoring.submit_pick(pool_round, 'player1-socket', 'Burgers')
    assert pool_round.current_round.picks == {}


def test_submit_pick_rejected_for_other_variants(started_room):
    rounds.start_round(started_room, 'q')
    with pytest.raises(StateConflictError, match='Not a pool selection round'):
        scoring.submit_pick(started_room, 'player1-socket', 'x')


def test_self_pick_of_sole_empty_answer_rejected(started_room):
    rounds.start_round(started_room, 'Empty test?', 'pool_selection')
    _answer_all(started_room, '', 'Sushi', 'Tacos', 'Pasta')
    rounds.start_selecting(started_room)
    with pytest.raises(StateConflictError, match='Cannot pick your own answer'):
        scoring.submit_pick(started_room, 'player1-socket', '')


def test_self_pick_allowed_when_answer_is_shared(started_room):
    rounds.start_round(started_room, 'Multiple empty test?', 'pool_selection')
    _answer_all(started_room, '', '', 'Tacos', 'Pasta')
    rounds.start_selecting(started_room)
    scoring.submit_pick(started_room, 'player1-socket', '')
    assert started_room.current_round.picks['Alice'] == ''


def test_missing_answer_counts_as_empty(started_room):
    rounds.start_round(started_room, 'q', 'pool_selection')
    rounds.submit_answer(started_room, 'player1-socket', 'Pizza')
    rounds.start_selecting(started_room)
    pool = scoring.get_answer_pool(started_room)
    assert sorted(e.answer_text for e in pool) == ['', '', '', 'Pizza']
    scoring.submit_pick(started_room, 'player1-socket', '')


def test_answer_pool_is_cached(pool_round):
    first = scoring.get_answer_pool(pool_round)
    second = scoring.get_answer_pool(pool_round)
    third = scoring.get_answer_pool(pool_round)
    assert first == second == third
    assert sorted(e.answer_text for e in first) == ['Pasta', 'Pizza', 'Sushi', 'Tacos']
    assert pool_round.current_round.answer_pool == first


def test_answer_pool_keeps_order_after_changed_answers(pool_round):
    before = scoring.get_answer_pool(pool_round, rng=random.Random(3))
    rounds.return_to_answering(pool_round)
    rounds.submit_answer(pool_round, 'player1-socket', 'Ramen')
    pool = scoring.get_answer_pool(pool_round)
    assert [e.author_name for e in pool] == [e.author_name for e in before]
    assert 'Ramen' in [e.answer_text for e in pool]
    assert 'Pizza' not in [e.answer_text for e in pool]


def test_pool_texts_have_no_attribution(selecting):
    texts = scoring.get_pool_texts(selecting)
    assert all(isinstance(t, str) for t in texts)
    assert len(texts) == 4


def test_are_all_picks_in_ignores_disconnected(selecting):
    assert not scoring.are_all_picks_in(selecting)
    scoring.submit_pick(selecting, 'player1-socket', 'Sushi')
    scoring.submit_pick(selecting, 'player2-socket', 'Pizza')
    scoring.submit_pick(selecting, 'player3-socket', 'Pasta')
    assert not scoring.are_all_picks_in(selecting)
    roster.disconnect_player(selecting, 'player4-socket')
    assert scoring.are_all_picks_in(selecting)


def test_author_lookups(pool_round):
    assert scoring.get_author_of_answer(pool_round, 'Pizza').name == 'Alice'
    assert scoring.get_author_of_answer(pool_round, 'pizza') is None
    assert scoring.get_author_of_answer(pool_round, 'Unknown') is None
    assert [p.name for p in scoring.get_authors_of_answer(pool_round, ' PIZZA ')] == ['Alice']


def test_pickers_for_answer(selecting):
    assert scoring.get_pickers_for_answer(selecting, 'Pizza') == []
    scoring.submit_pick(selecting, 'player1-socket', 'Sushi')
    scoring.submit_pick(selecting, 'player3-socket', 'SUSHI')
    assert [p.name for p in scoring.get_pickers_for_answer(selecting, 'sushi')] == ['Alice', 'Carol']


def test_check_correct_pick_partner_wrong(selecting):
    scoring.submit_pick(selecting, 'player2-socket', 'Tacos')
    result = scoring.check_correct_pick(selecting, 'Pizza')
    assert result.correct_pickers == []
    assert result.team_id is None


def test_check_correct_pick_partner_right(selecting):
    scoring.submit_pick(selecting, 'player2-socket', 'Pizza')
    result = scoring.check_correct_pick(selecting, 'Pizza')
    assert [p.name for p in result.correct_pickers] == ['Bob']
    assert result.team_id == selecting.find_player_by_name('Alice').team_id
    assert result.team_points == {result.team_id: 1}


def test_check_correct_pick_is_case_and_space_insensitive(selecting):
    scoring.submit_pick(selecting, 'player2-socket', 'pizza')
    results = [scoring.check_correct_pick(selecting, t) for t in ('Pizza', 'PIZZA', '  pizza ')]
    assert results[0] == results[1] == results[2]
    assert len(results[0].correct_pickers) == 1


def test_same_team_duplicate_scores_two(started_room):
    room = started_room
    rounds.start_round(room, 'Drink?', 'pool_selection')
    _answer_all(room, 'water', 'Water', 'Tea', 'Coffee')
    rounds.start_selecting(room)
    scoring.submit_pick(room, 'player1-socket', 'water')
    scoring.submit_pick(room, 'player2-socket', 'water')

    result = scoring.check_correct_pick(room, 'water')
    team_ab = room.find_player_by_name('Alice').team_id
    assert len(result.correct_pickers) == 2
    assert result.team_points[team_ab] == 2
    assert result.team_ids == [team_ab]


def test_cross_team_duplicate_scores_each_team(started_room):
    room = started_room
    rounds.start_round(room, 'Pet?', 'pool_selection')
    # Alice (team 1) and Carol (team 2) both wrote "dog"
    _answer_all(room, 'dog', 'cat', 'Dog', 'fish')
    rounds.start_selecting(room)
    scoring.submit_pick(room, 'player2-socket', 'dog')
    scoring.submit_pick(room, 'player4-socket', 'dog')

    result = scoring.check_correct_pick(room, 'dog')
    assert len(result.team_ids) == 2
    assert all(points == 1 for points in result.team_points.values())
    assert sorted(p.name for p in result.correct_pickers) == ['Bob', 'Dave']


def test_correct_pick_on_empty_answers(started_room):
    room = started_room
    rounds.start_round(room, 'Empty test?', 'pool_selection')
    _answer_all(room, '', '', 'Tacos', 'Pasta')
    rounds.start_selecting(room)
    scoring.submit_pick(room, 'player1-socket', '')
    result = scoring.check_correct_pick(room, '')
    assert [p.name for p in result.correct_pickers] == ['Alice']


def test_disconnected_partner_has_no_pick(selecting):
    roster.disconnect_player(selecting, 'player2-socket')
    assert scoring.check_correct_pick(selecting, 'Pizza').correct_pickers == []


def test_reveal_guards(selecting):
    assert not scoring.is_pool_answer_revealed(selecting, 'Pizza')
    scoring.mark_pool_answer_revealed(selecting, ' PIZZA')
    assert scoring.is_pool_answer_revealed(selecting, 'pizza')

    scoring.submit_pick(selecting, 'player2-socket', 'Pizza')
    assert scoring.mark_pool_pickers_revealed(selecting, 'Pizza') == ['Bob']
    scoring.submit_pick(selecting, 'player3-socket', 'Pizza')
    # first reveal wins
    assert scoring.mark_pool_pickers_revealed(selecting, 'pizza') == ['Bob']
    assert scoring.get_revealed_pool_pickers(selecting) == {'pizza': ['Bob']}


def test_award_pool_answer_only_once(selecting):
    scoring.submit_pick(selecting, 'player2-socket', 'Pizza')
    rounds.complete_round(selecting)
    team_id = selecting.find_player_by_name('Bob').team_id

    result, awarded = scoring.award_pool_answer(selecting, 'Pizza')
    assert awarded and result.team_points == {team_id: 1}
    result, awarded = scoring.award_pool_answer(selecting, 'pizza')
    assert not awarded
    assert selecting.find_team(team_id).score == 1


def test_full_pool_round(started_room):
    room = started_room
    rounds.start_round(room, 'Dream vacation?', 'pool_selection')
    _answer_all(room, 'Hawaii', 'Paris', 'Tokyo', 'London')
    assert rounds.is_round_complete(room)

    rounds.start_selecting(room)
    assert len(scoring.get_answer_pool(room)) == 4
    scoring.submit_pick(room, 'player1-socket', 'Paris')
    scoring.submit_pick(room, 'player2-socket', 'Tokyo')
    scoring.submit_pick(room, 'player3-socket', 'Hawaii')
    scoring.submit_pick(room, 'player4-socket', 'Tokyo')
    assert scoring.are_all_picks_in(room)

    rounds.complete_round(room)
    assert room.status == 'scoring'
    assert [p.name for p in scoring.check_correct_pick(room, 'Paris').correct_pickers] == ['Alice']
    assert [p.name for p in scoring.check_correct_pick(room, 'Tokyo').correct_pickers] == ['Dave']


def test_pool_texts_hidden_while_answering(pool_round):
    with pytest.raises(StateConflictError, match='Round not in selecting phase'):
        scoring.get_pool_texts(pool_round)
    assert pool_round.current_round.answer_pool is None


def test_award_waits_for_all_picks(selecting):
    with pytest.raises(StateConflictError, match='Picks are not all in yet'):
        scoring.award_pool_answer(selecting, 'Pizza')
    assert not scoring.is_pool_answer_revealed(selecting, 'Pizza')

    scoring.submit_pick(selecting, 'player2-socket', 'Pizza')
    rounds.complete_round(selecting)
    result, awarded = scoring.award_pool_answer(selecting, 'Pizza')
    assert awarded
    assert selecting.find_team(result.team_id).score == 1


def test_reopen_after_reveal_replays_selection(selecting):
    room = selecting
    scoring.submit_pick(room, 'player2-socket', 'Pizza')
    rounds.complete_round(room)
    result, _ = scoring.award_pool_answer(room, 'Pizza')
    scoring.mark_pool_pickers_revealed(room, 'Pizza')
    team_id = result.team_id
    assert room.find_team(team_id).score == 1

    rounds.return_to_answering(room)
    rnd = room.current_round
    assert room.find_team(team_id).score == 0
    assert rnd.picks == {} and rnd.revealed_pool_answers == set()
    assert scoring.get_revealed_pool_pickers(room) == {}

    rounds.start_selecting(room)
    scoring.submit_pick(room, 'player2-socket', 'Pizza')
    scoring.submit_pick(room, 'player4-socket', 'pizza')
    rounds.complete_round(room)
    result, awarded = scoring.award_pool_answer(room, 'Pizza')
    assert awarded and result.team_points == {team_id: 1}
    assert scoring.mark_pool_pickers_revealed(room, 'Pizza') == ['Bob', 'Dave']
    assert room.find_team(team_id).score == 1


def test_reopen_keeps_manual_points(selecting):
    room = selecting
    team_id = room.teams[0].team_id
    rounds.update_team_score(room, team_id, 2)
    rounds.return_to_answering(room)
    assert room.find_team(team_id).score == 2

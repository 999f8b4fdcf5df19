from datetime import datetime, timezone
import json

from pairplay import db


def utcnow():
    return datetime.now(timezone.utc)


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    # room codes are recycled once a room is deleted, so not unique here
    room_code = db.Column(db.String(4), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    ended_at = db.Column(db.DateTime, nullable=True)
    rounds = db.relationship(
        'RoundRecord', back_populates='game', order_by='RoundRecord.round_number',
        cascade='all, delete-orphan',
    )

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
        }


class RoundRecord(db.Model):
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    question = db.Column(db.Text, nullable=False)
    variant = db.Column(db.String(32), nullable=False, default='open_ended')
    options = db.Column(db.Text, nullable=True)  # JSON-encoded list
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    game = db.relationship('Game', back_populates='rounds')
    answers = db.relationship(
        'AnswerRecord', back_populates='round', order_by='AnswerRecord.id',
        cascade='all, delete-orphan',
    )

    def to_dict(self):
        return {
            'round_id': self.id,
            'round_number': self.round_number,
            'question': self.question,
            'variant': self.variant,
            'options': json.loads(self.options) if self.options else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'answers': [a.to_dict() for a in self.answers],
        }


class AnswerRecord(db.Model):
    __tablename__ = 'answer'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    player_name = db.Column(db.String(64), nullable=False)
    team_id = db.Column(db.String(4), nullable=True)
    answer_text = db.Column(db.Text, nullable=False, default='')
    response_time_ms = db.Column(db.Integer, nullable=False, default=-1)
    submitted_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    round = db.relationship('RoundRecord', back_populates='answers')

    def to_dict(self):
        return {
            'answer_id': self.id,
            'player_name': self.player_name,
            'team_id': self.team_id,
            'answer_text': self.answer_text,
            'response_time_ms': self.response_time_ms,
        }

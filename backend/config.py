import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///pairplay.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Comma-separated list of frontend origins allowed for HTTP and Socket.IO
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
    # How long a disconnected host has to come back before the room is deleted (seconds)
    HOST_GRACE_PERIOD_SEC = float(os.environ.get('HOST_GRACE_PERIOD_SEC', '5'))
    # Simulated players answer after a random delay in this range (seconds)
    BOT_MIN_DELAY_SEC = float(os.environ.get('BOT_MIN_DELAY_SEC', '2'))
    BOT_MAX_DELAY_SEC = float(os.environ.get('BOT_MAX_DELAY_SEC', '8'))
    MAX_BOTS = int(os.environ.get('MAX_BOTS', '24'))

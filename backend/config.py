import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///shape3d.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Comma separated list of browser origins allowed to talk to the API and /ws
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
    # Voxel grid: x/z span GRID_SIZE cells centred on the origin, y is 0..MAX_HEIGHT
    GRID_SIZE = int(os.environ.get('GRID_SIZE', '20'))
    MAX_HEIGHT = int(os.environ.get('MAX_HEIGHT', '10'))
    TOTAL_ROUNDS = int(os.environ.get('TOTAL_ROUNDS', '5'))
    SLOTS_PER_CHALLENGE = int(os.environ.get('SLOTS_PER_CHALLENGE', '3'))
    MAX_POSITION_ATTEMPTS = int(os.environ.get('MAX_POSITION_ATTEMPTS', '100'))
    # Legacy timed expiry (seconds). 0 means a challenge only ends when completed.
    CHALLENGE_DURATION_SEC = int(os.environ.get('CHALLENGE_DURATION_SEC', '0'))
    # Delay before the next challenge after a timed expiry. 0 creates it immediately.
    CHALLENGE_INTERVAL_SEC = int(os.environ.get('CHALLENGE_INTERVAL_SEC', '0'))

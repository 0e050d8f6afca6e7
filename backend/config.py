import os


def _tier_effect(tier, steps, danger_ms, penalty_ms):
    # Danger window and penalty are tuned independently per tier
    return (
        int(os.environ.get(f'TIER{tier}_STEPS', steps)),
        int(os.environ.get(f'TIER{tier}_DANGER_MS', danger_ms)),
        int(os.environ.get(f'TIER{tier}_PENALTY_MS', penalty_ms)),
    )


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Shared secret for the race host screen
    HOST_PASSWORD = os.environ.get('HOST_PASSWORD') or os.environ.get('ADMIN_PASSWORD')
    # Question source: a local CSV file or a Google Sheet. With a service-account
    # key file the sheet is read privately, otherwise through its CSV export.
    QUESTIONS_CSV = os.environ.get('QUESTIONS_CSV')
    QUESTIONS_SHEET_ID = os.environ.get('QUESTIONS_SHEET_ID')
    QUESTIONS_SHEET_NAME = os.environ.get('QUESTIONS_SHEET_NAME', 'Questions')
    QUESTIONS_RANGE = os.environ.get('QUESTIONS_RANGE', 'A2:B')
    GOOGLE_CREDENTIALS_FILE = (
        os.environ.get('GOOGLE_CREDENTIALS_FILE') or os.environ.get('GOOGLE_APPLICATION_CREDENTIALS')
    )
    QUESTION_SOURCE_TIMEOUT_SEC = int(os.environ.get('QUESTION_SOURCE_TIMEOUT_SEC', '10'))
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
        ).split(',') if o.strip()
    ]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Race tuning
    RACE_START_DELAY_SEC = int(os.environ.get('RACE_START_DELAY_SEC', '5'))
    FINISH_LINE = int(os.environ.get('FINISH_LINE', '700'))
    STEP_DISTANCE = int(os.environ.get('STEP_DISTANCE', '35'))
    STARTING_PASSES = int(os.environ.get('STARTING_PASSES', '3'))
    # tier -> (steps, danger window ms, penalty ms)
    TIER_EFFECTS = {
        1: _tier_effect(1, 1, 5000, 5000),
        2: _tier_effect(2, 2, 10000, 10000),
        3: _tier_effect(3, 3, 15000, 15000),
    }

import time
from typing import Set

from sqlalchemy.exc import SQLAlchemyError

from phraseotomy import db, socketio
from phraseotomy.models import GameAudio, GameSession, Guess, Player, Turn
from phraseotomy.realtime import publish_events
from . import events as ev
from .events import GameEvent


_scheduled_cleanup_ids: Set[int] = set()


def delete_session_tree(store, session_id: int) -> bool:
    """Delete a session and every row it owns, children first.

    There are no cascades in the schema; the caller commits.
    Returns False when the session did not exist.
    """
    game = store.get(GameSession, session_id)
    if game is None:
        return False
    turn_ids = [tid for (tid,) in store.query(Turn.id).filter(Turn.session_id == session_id)]
    if turn_ids:
        store.query(Guess).filter(Guess.turn_id.in_(turn_ids)).delete(synchronize_session=False)
    store.query(GameAudio).filter(GameAudio.session_id == session_id).delete(synchronize_session=False)
    store.query(Turn).filter(Turn.session_id == session_id).delete(synchronize_session=False)
    store.query(Player).filter(Player.session_id == session_id).delete(synchronize_session=False)
    store.delete(game)
    store.flush()
    return True


def schedule_session_cleanup(app, session_id: int, delay: int = None) -> None:
    """Delete a finished session after a hold period, without blocking the caller.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set (then runs inline)
    - Ensures a single pending cleanup per session per process
    - Cannot be cancelled once scheduled
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    if delay is None:
        delay = int(app.config.get('CLEANUP_DELAY_SEC', 35))

    if session_id in _scheduled_cleanup_ids:
        app.logger.info(f"[cleanup-skip] session={session_id} already scheduled")
        return
    _scheduled_cleanup_ids.add(session_id)
    app.logger.info(f"[cleanup-set] session={session_id} delay={delay}s")

    def _worker(sid: int, wait: int):
        if wait > 0:
            time.sleep(wait)
        with app.app_context():
            try:
                game = db.session.get(GameSession, sid)
                lobby_code = game.lobby_code if game else None
                if not delete_session_tree(db.session, sid):
                    app.logger.info(f"[cleanup-abort] session={sid} already gone")
                    return
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                app.logger.exception(f"[cleanup-error] session={sid}")
                return
            finally:
                _scheduled_cleanup_ids.discard(sid)
            app.logger.info(f"[cleanup-fire] session={sid} deleted")
            publish_events(lobby_code, [GameEvent(ev.SESSION_CLEANED, {'session_id': sid})])

    if app.config.get('TESTING'):
        _worker(session_id, delay)
    else:
        socketio.start_background_task(_worker, session_id, delay)

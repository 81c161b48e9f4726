import logging
import random
from datetime import date, datetime

from flask import Flask, request, jsonify
from flask_cors import CORS

from sm2_drill import __version__
from sm2_drill.config import load_settings
from sm2_drill.db import MongoDocumentStore, OutlineDocument
from sm2_drill.errors import InvalidRatingError, SessionStateError, UnknownEntryError
from sm2_drill.session import ReviewSession

logger = logging.getLogger(__name__)


def build_store(settings):
    """MongoDB when MONGO_URI is set, otherwise an in-memory document."""
    if settings.mongo_uri:
        return MongoDocumentStore.from_uri(
            settings.mongo_uri, settings.database_name, settings.collection_name
        )
    logger.info("MONGO_URI not set, keeping cards in memory")
    return OutlineDocument()


def _json_object():
    """The request's JSON body as a dict, {} when empty, None when it is not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _card_json(store, entry):
    question, answer = store.entry_body(entry)
    return {
        'card_id': store.entry_id(entry),
        'heading': store.heading(entry),
        'question': question,
        'answer': answer,
        'fields': dict(store.fields(entry)),
    }


def _session_json(session):
    current = session.current
    return {
        'state': session.state.value,
        'remaining': len(session.queue),
        'card_id': session.store.entry_id(current) if current is not None else None,
    }


def create_app(settings=None, store=None, rng=None, clock=date.today):
    """
    Build the Flask app around one document and one review session.
    Parameters:
        settings(Settings): Configuration, loaded from the environment if None
        store(DocumentStore): Card document, built from settings if None
        rng: Random source for ordering cards
        clock(callable): Returns today's date
    """
    if settings is None:
        settings = load_settings()
    if store is None:
        store = build_store(settings)
    if rng is None and settings.random_seed is not None:
        rng = random.Random(settings.random_seed)

    app = Flask(__name__)
    session = ReviewSession(store, rng=rng, clock=clock)
    app.config['REVIEW_SESSION'] = session

    CORS(
        app,
        resources={r"/api/*": {"origins": settings.frontend_origins}},
        allow_headers=["Content-Type"],
        methods=["GET", "POST", "OPTIONS"]
    )

    # ==================== Errors ====================

    @app.errorhandler(InvalidRatingError)
    def invalid_rating(e):
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(SessionStateError)
    def wrong_state(e):
        return jsonify({'error': str(e), 'state': session.state.value}), 409

    @app.errorhandler(UnknownEntryError)
    def unknown_entry(e):
        return jsonify({'error': 'Card not found'}), 404

    # ==================== Health Check ====================

    @app.route('/', methods=['GET'])
    def index():
        return jsonify({
            'message': 'SM-2 Drill API',
            'version': __version__,
            'status': 'running'
        })

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'})

    # ==================== Cards APIs ====================

    @app.route('/api/cards', methods=['GET'])
    def get_all_cards():
        cards = [_card_json(store, e) for e in store.enumerate_entries()]
        return jsonify({'cards': cards})

    @app.route('/api/cards', methods=['POST'])
    def add_card_api():
        data = _json_object()
        if data is None:
            return jsonify({'error': 'Expected a JSON object'}), 400
        question = data.get('question', '')
        answer = data.get('answer', '')
        heading = data.get('heading') or 'Card'

        if not isinstance(question, str) or not isinstance(answer, str):
            return jsonify({'error': 'Question and answer must be text'}), 400

        try:
            entry = session.start_new_card_template(question, answer, heading)
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
        return jsonify({
            'message': 'Card added successfully',
            'card': _card_json(store, entry)
        }), 201

    @app.route('/api/cards/<card_id>', methods=['GET'])
    def get_card_api(card_id):
        return jsonify({'card': _card_json(store, store.find(card_id))})

    @app.route('/api/cards/due', methods=['POST'])
    def get_due_cards():
        data = _json_object()
        if data is None:
            return jsonify({'error': 'Expected a JSON object'}), 400
        date_str = data.get('date', clock().isoformat())

        try:
            target_date = datetime.strptime(date_str, '%Y-%m-%d').date()
        except (TypeError, ValueError):
            return jsonify({'error': 'Invalid date format'}), 400

        due = session.repository.due_cards(target_date)
        return jsonify({
            'date': target_date.isoformat(),
            'count': len(due),
            'cards': [_card_json(store, e) for e in due]
        })

    # ==================== Review Session APIs ====================

    @app.route('/api/session', methods=['GET'])
    def get_session():
        return jsonify(_session_json(session))

    @app.route('/api/session/start', methods=['POST'])
    def start_session():
        count = session.start_review()
        body = _session_json(session)
        if count == 0:
            body['message'] = 'Nothing to review'
        return jsonify(body)

    @app.route('/api/session/prompt', methods=['GET'])
    def prompt():
        text = session.prompt_card()
        return jsonify(dict(_session_json(session), text=text))

    @app.route('/api/session/reveal', methods=['GET'])
    def reveal():
        text = session.reveal_card()
        return jsonify(dict(_session_json(session), text=text))

    @app.route('/api/session/rate', methods=['POST'])
    def rate():
        data = _json_object()
        if data is None:
            return jsonify({'error': 'Expected a JSON object'}), 400
        rating = data.get('rating')

        if rating is None:
            return jsonify({'error': 'Missing rating'}), 400

        schedule = session.rate_yourself(rating)
        body = _session_json(session)
        body['scheduled'] = {
            'review': schedule.review.isoformat(),
            'rep': schedule.rep,
            'interval': schedule.interval,
            'EF': schedule.ef,
        }
        return jsonify(body)

    @app.route('/api/session/next', methods=['POST'])
    def skip():
        session.next_card()
        return jsonify(_session_json(session))

    return app


# ==================== Entry Point ====================

def main():
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    app = create_app(settings)
    logger.info("=" * 50)
    logger.info("SM-2 Drill Backend")
    logger.info("Environment: %s", settings.env)
    logger.info("Port: %s", settings.port)
    logger.info("=" * 50)
    app.run(host="0.0.0.0", port=settings.port, debug=settings.debug)


if __name__ == '__main__':
    main()

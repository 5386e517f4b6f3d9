#!/usr/bin/env python3
"""
PlayLog Web - JSON API for the PlayLog game collection tracker.
Serves the personal collection, community feed, home digest, display-name
workflow and catalog search to the front end.
"""

import argparse
import logging
import os
import secrets
from functools import wraps
from typing import Dict, Optional

from colorama import Fore, Style
from dotenv import load_dotenv
from flask import Flask, jsonify, redirect, request, session

# .env must be loaded before database.py reads DATABASE_URL
load_dotenv()

import database  # noqa: E402
import playlog  # noqa: E402
from app.errors import AuthenticationError, CollectionError  # noqa: E402
from identity_client import IdentityError  # noqa: E402

# Initialize logging early so database module logs are captured
log_level = os.getenv('PLAYLOG_LOG_LEVEL', 'INFO')
playlog_logger = playlog.setup_logging(log_level)
web_logger = logging.getLogger('playlog.web')
try:
    os.makedirs('logs', exist_ok=True)
    fh = logging.FileHandler('logs/playlog_web.log')
    fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
    fh.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    web_logger.addHandler(fh)
except OSError:
    web_logger.warning('Could not create log file handler')

# Create tables on import; WSGI hosts never call main()
if database.init_db():
    web_logger.info('Database initialized successfully')
else:
    web_logger.warning('Database initialization reported failure')

tracker = playlog.PlayLog()

app = Flask(__name__)


def _session_secret(config):
    """Return the configured session secret, or a random one for placeholders."""
    secret = config.get('secret_key')
    if playlog.is_placeholder_value(secret):
        web_logger.warning('secret_key not configured; sessions will not survive a restart')
        return os.urandom(24)
    return secret


app.secret_key = _session_secret(tracker.config)


# ===========================================================================================
# Helpers
# ===========================================================================================

def current_principal() -> Optional[Dict]:
    """Return the signed-in principal stored in the session, if any."""
    principal = session.get('user')
    if principal and principal.get('email'):
        return principal
    return None


def require_login(f):
    """Decorator to require user to be logged in"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_principal():
            return jsonify({'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function


@app.errorhandler(CollectionError)
def handle_collection_error(err: CollectionError):
    """Render any service error as ``{"error": ..., "field": ...}``."""
    if err.status_code >= 500:
        web_logger.error('%s: %s', type(err).__name__, err.message)
    return jsonify(err.to_dict()), err.status_code


@app.route('/api/status')
def api_status():
    """Get application status"""
    principal = current_principal()
    return jsonify({
        'status': 'ok',
        'logged_in': principal is not None,
        'catalog_enabled': tracker.catalog_client.is_configured,
        'sign_in_enabled': tracker.identity_client is not None,
    })


# ===========================================================================================
# Authentication Endpoints
# ===========================================================================================

def _redirect_uri() -> str:
    return tracker.config.get('google_redirect_uri') or request.url_root.rstrip('/') + '/api/auth/callback'


@app.route('/api/auth/login', methods=['GET'])
def api_auth_login():
    """Redirect the browser to the identity provider"""
    if tracker.identity_client is None:
        return jsonify({'error': 'Sign-in is not configured'}), 503
    state = secrets.token_urlsafe(16)
    session['oauth_state'] = state
    return redirect(tracker.identity_client.build_auth_url(_redirect_uri(), state))


@app.route('/api/auth/callback', methods=['GET'])
def api_auth_callback():
    """Finish the OAuth flow and store the principal in the session"""
    if tracker.identity_client is None:
        return jsonify({'error': 'Sign-in is not configured'}), 503

    expected_state = session.pop('oauth_state', None)
    if not expected_state or request.args.get('state') != expected_state:
        raise AuthenticationError('Invalid sign-in state')
    code = request.args.get('code')
    if not code:
        raise AuthenticationError('Missing authorization code')

    try:
        principal = tracker.identity_client.exchange_code(code, _redirect_uri())
    except IdentityError as e:
        web_logger.warning('Sign-in failed: %s', e)
        raise AuthenticationError('Sign-in failed') from e

    session['user'] = principal
    web_logger.info('User logged in: %s', principal['email'])
    return redirect('/')


@app.route('/api/auth/current', methods=['GET'])
def api_auth_current():
    """Get current signed-in user"""
    principal = current_principal()
    if not principal:
        return jsonify({'user': None}), 401

    db = database.SessionLocal()
    try:
        display_name = tracker.user_service.get_display_name(db, principal['email'])
    finally:
        db.close()
    return jsonify({'user': {**principal, 'display_name': display_name}})


@app.route('/api/auth/logout', methods=['POST'])
def api_auth_logout():
    """Log out the current user"""
    principal = session.pop('user', None)
    if principal:
        web_logger.info('User logged out: %s', principal.get('email'))
    return jsonify({'message': 'Logged out successfully'})


# ===========================================================================================
# Games
# ===========================================================================================

@app.route('/api/games/search', methods=['GET'])
def api_games_search():
    """Search the MobyGames catalog"""
    games = tracker.catalog_service.search(request.args.get('q'), request.args.get('limit'))
    return jsonify({'games': games, 'total': len(games)})


@app.route('/api/games/add', methods=['POST'])
@require_login
def api_games_add():
    """Add a game to the signed-in user's collection"""
    data = request.get_json(silent=True) or {}
    principal = current_principal()

    db = database.SessionLocal()
    try:
        entry = tracker.collection_service.add_game(
            db, principal,
            game_id=data.get('game_id'),
            title=data.get('title'),
            platform=data.get('platform'),
            release_date=data.get('release_date'),
            image_url=data.get('image_url'),
            played_at=data.get('played_at'),
            rating=data.get('rating'),
        )
    finally:
        db.close()
    return jsonify({'message': 'Game added to collection', 'game': entry})


@app.route('/api/games/collection', methods=['GET'])
@require_login
def api_games_collection():
    """Get the signed-in user's collection, optionally sorted"""
    principal = current_principal()
    db = database.SessionLocal()
    try:
        games = tracker.collection_service.list_collection(
            db, principal['email'], sort=request.args.get('sort'))
    finally:
        db.close()
    web_logger.info('Fetched collection for %s: %d games', principal['email'], len(games))
    return jsonify({'games': games, 'total': len(games)})


@app.route('/api/games/all-users', methods=['GET'])
def api_games_all_users():
    """Get every user's logged games with feed statistics"""
    db = database.SessionLocal()
    try:
        feed = tracker.feed_service.get_feed(db)
    finally:
        db.close()
    return jsonify(feed)


@app.route('/api/games/recent', methods=['GET'])
def api_games_recent():
    """Get the home-page digest of recently logged games"""
    db = database.SessionLocal()
    try:
        games = tracker.feed_service.get_digest(db)
    finally:
        db.close()
    return jsonify({'games': games, 'total': len(games)})


# ===========================================================================================
# Display name
# ===========================================================================================

@app.route('/api/user/display-name', methods=['GET'])
@require_login
def api_user_display_name_get():
    """Get the signed-in user's display name"""
    principal = current_principal()
    db = database.SessionLocal()
    try:
        display_name = tracker.user_service.get_display_name(db, principal['email'])
    finally:
        db.close()
    return jsonify({'display_name': display_name, 'needs_setup': display_name is None})


@app.route('/api/user/display-name', methods=['PUT'])
@require_login
def api_user_display_name_put():
    """Set the signed-in user's display name"""
    data = request.get_json(silent=True) or {}
    principal = current_principal()
    db = database.SessionLocal()
    try:
        display_name = tracker.user_service.set_display_name(
            db, principal, data.get('display_name'))
    finally:
        db.close()
    return jsonify({'success': True, 'display_name': display_name})


def main():
    """Main entry point for the web server"""
    global tracker
    parser = argparse.ArgumentParser(description='PlayLog Web API')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--host', default='127.0.0.1', help='Interface to bind')
    parser.add_argument('--port', type=int, default=5000, help='Port to listen on')
    parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')
    args = parser.parse_args()

    tracker = playlog.PlayLog(config_path=args.config)
    app.secret_key = _session_secret(tracker.config)

    print("\n" + "=" * 60)
    print(f"{Fore.GREEN}🎮 PlayLog is starting...{Style.RESET_ALL}")
    print("=" * 60)
    print(f"\nAPI listening on http://{args.host}:{args.port}")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    try:
        app.run(host=args.host, port=args.port, debug=args.debug)
    except KeyboardInterrupt:
        print("\n\n" + "=" * 60)
        print("🛑 PlayLog stopped")
        print("=" * 60 + "\n")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Link Dashboard Server
Flask backend for workspace links, members and usage limits
"""

from flask import Flask, jsonify
from flask_cors import CORS
import os
from pathlib import Path
from datetime import datetime
import secrets

BASE_DIR = Path(__file__).parent

app = Flask(__name__)
CORS(app, supports_credentials=True)

# Secret key for sessions (generate a secure one for production)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', secrets.token_hex(32))

# Database configuration
database_url = os.environ.get('DATABASE_URL', f'sqlite:///{BASE_DIR}/linkdeck.db')

# Fix Heroku/Vercel's postgres:// scheme (should be postgresql://)
if database_url and database_url.startswith('postgres://'):
    database_url = database_url.replace('postgres://', 'postgresql://', 1)

# Fix for Neon PostgreSQL SSL issues
if database_url and database_url.startswith('postgresql://'):
    if '?' not in database_url:
        database_url += '?sslmode=require'
    elif 'sslmode' not in database_url:
        database_url += '&sslmode=require'

app.config['SQLALCHEMY_DATABASE_URI'] = database_url
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# PostgreSQL-specific connection pool settings
if database_url and database_url.startswith('postgresql://'):
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_size': 5,
        'max_overflow': 10,
        'pool_recycle': 300,  # Recycle connections after 5 minutes
        'pool_pre_ping': True,  # Test connections before using them (fixes SSL drops)
        'pool_timeout': 30,
        'connect_args': {
            'connect_timeout': 10,
            'keepalives': 1,
            'keepalives_idle': 30,
            'keepalives_interval': 10,
            'keepalives_count': 5
        }
    }
else:
    # SQLite settings (for local dev)
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_pre_ping': True
    }

# Redis for usage counters (optional; database fallback when unset)
app.config['REDIS_URL'] = os.environ.get('REDIS_URL')

# Import and initialize database
from models import db
db.init_app(app)

# Initialize rate limiter
from rate_limiter import init_limiter
limiter = init_limiter(app)

# Usage counters (Redis) and usage error rendering
from core.usage import init_counter_store, register_usage_error_handlers
init_counter_store(app)
register_usage_error_handlers(app)

# Register link / member routes and the public redirect
from routes.link_routes import links_bp, redirect_bp
app.register_blueprint(links_bp)
app.register_blueprint(redirect_bp)

# Register usage routes
from routes.usage_routes import usage_bp
app.register_blueprint(usage_bp)


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint to verify database and counter store connections"""
    from core.usage import get_counter_store

    counters = 'connected' if get_counter_store().available else 'unavailable'
    try:
        db.session.execute(db.text('SELECT 1'))
        db.session.commit()
        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'counter_store': counters,
            'timestamp': datetime.utcnow().isoformat()
        })
    except Exception as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'counter_store': counters,
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 503


if __name__ == '__main__':
    print("=" * 60)
    print("Link Dashboard Server")
    print("=" * 60)
    print(f"Base directory: {BASE_DIR}")
    print("Server starting on http://localhost:5000")
    print("=" * 60)

    app.run(host='0.0.0.0', port=5000, debug=True)

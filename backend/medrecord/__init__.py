import os
import logging
import click
from flask import Flask, request, redirect, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    app = Flask(__name__)

    is_production = os.getenv('FLASK_ENV') == 'production'

    # Require SECRET_KEY, no insecure fallback
    secret_key = os.getenv('SECRET_KEY')
    if not secret_key:
        raise RuntimeError('SECRET_KEY environment variable is required')
    app.config['SECRET_KEY'] = secret_key

    # Database configuration
    database_url = os.getenv('DATABASE_URL')
    if not database_url:
        raise RuntimeError('DATABASE_URL environment variable is required')

    # In production, require PostgreSQL
    if is_production and not database_url.startswith('postgresql'):
        raise RuntimeError(
            'Production deployments require PostgreSQL. '
            'DATABASE_URL must start with postgresql://'
        )

    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    if config_name == 'testing':
        app.config['TESTING'] = True

    # Request size limit (1 MB)
    app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024

    db.init_app(app)

    # CORS: restrict origins
    allowed_origins = os.getenv('ALLOWED_ORIGINS', '')
    if allowed_origins:
        origins_list = [o.strip() for o in allowed_origins.split(',') if o.strip()]
    elif is_production:
        raise RuntimeError(
            'ALLOWED_ORIGINS environment variable is required in production'
        )
    else:
        # Development: allow localhost variants
        origins_list = [
            'http://localhost:*',
            'http://127.0.0.1:*',
        ]

    CORS(app, resources={
        r"/api/*": {"origins": origins_list},
    })

    # Redirect HTTP to HTTPS in production
    if is_production:
        @app.before_request
        def enforce_https():
            if not request.is_secure and request.headers.get('X-Forwarded-Proto', 'http') != 'https':
                url = request.url.replace('http://', 'https://', 1)
                return redirect(url, code=301)

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Referrer-Policy'] = 'no-referrer'
        if is_production or request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    # Validate Content-Type on POST/PUT requests
    @app.before_request
    def validate_content_type():
        if request.method in ('POST', 'PUT') and request.path != '/health':
            content_type = request.content_type or ''
            if 'application/json' not in content_type:
                return jsonify({'error': 'Content-Type must be application/json'}), 415

    from medrecord.utils.errors import ApiError

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error('%s: %s', error.code, error.message)
        return jsonify(error.to_dict()), error.status_code

    from medrecord.utils.audit_logger import setup_audit_logging
    setup_audit_logging(app)

    from medrecord.routes.health_parameters import health_parameters_bp

    app.register_blueprint(health_parameters_bp, url_prefix='/api/health-parameters')

    @app.route('/health')
    def health():
        return {'status': 'healthy'}, 200

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        import medrecord.models  # noqa: F401
        db.create_all()
        print('Database tables created.')

    @app.cli.command('create-user')
    @click.option('--email', required=True)
    @click.option('--role', required=True)
    @click.option('--first-name', required=True)
    @click.option('--last-name', required=True)
    def create_user(email, role, first_name, last_name):
        """Register an account for an identity issued by the auth service."""
        from medrecord.models.user import User
        from medrecord.utils.validators import validate_user

        errors = validate_user({
            'email': email, 'role': role,
            'first_name': first_name, 'last_name': last_name,
        })
        if errors:
            raise click.UsageError('; '.join(errors))

        email = email.strip().lower()
        if User.find_by_email(email):
            raise click.UsageError('A user with this email already exists')

        user = User(role=role)
        user.email = email
        user.first_name = first_name.strip()
        user.last_name = last_name.strip()
        db.session.add(user)
        db.session.commit()
        print(f'Created {role} user (id={user.id}).')

    return app

import logging

from flask import Flask, g, jsonify, request, session
from flask_migrate import Migrate
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import Config
from database import db


# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)

logging.basicConfig(
    level=app.config.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

db.init_app(app)

# Models import should be after initializing db
from models.github_token import GitHubToken
from models.notification import Notification
from models.slack_installation import SlackInstallation
from models.task import Task
from models.task_event import TaskEvent
from models.user import User

from forms import LoginForm, RegisterForm
from routes import json_error, validation_error
from routes.analytics import analytics_bp
from routes.github import github_bp
from routes.notifications import notifications_bp
from routes.slack import slack_bp
from routes.tasks import tasks_bp
from routes.users import users_bp
from services.slack_service import SlackInstaller
from services.token_store import TokenDecryptionError

# Create flask command lines to update the db based on the model
# Usage:
# Create a migration script in ./migrations/versions
# > flask db migrate -m "Add column"
# Run the update
# > flask db upgrade
migrate = Migrate(app, db)

app.extensions["slack_installer"] = SlackInstaller.from_config(app.config)

app.register_blueprint(github_bp)
app.register_blueprint(tasks_bp)
app.register_blueprint(notifications_bp)
app.register_blueprint(slack_bp)
app.register_blueprint(users_bp)
app.register_blueprint(analytics_bp)


# User Authentication
# ------------------------------
@app.before_request
def load_user():
    """Load the logged-in User into g.user before every request.

    Blueprints decide for themselves whether an anonymous caller is allowed.
    """
    user_id = session.get("user_id")
    g.user = db.session.get(User, user_id) if user_id else None
    if user_id and g.user is None:
        session.pop("user_id", None)


@app.route("/api/auth/register", methods=["POST"])
def register():
    form = RegisterForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    user = User(
        username=form.username.data,
        name=form.name.data,
        email=form.email.data,
    )
    user.set_password(form.password.data)
    try:
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logging.error("Registration failed: %s", e, exc_info=True)
        return json_error("Registration failed", status=500)
    return jsonify({"success": True, "user": user.to_summary()}), 201


@app.route("/api/auth/login", methods=["POST"])
def login():
    form = LoginForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    user = User.query.filter_by(username=form.username.data).first()
    if user is None or not user.check_password(form.password.data):
        return json_error("Invalid username or password", status=401)
    session.clear()
    session["user_id"] = user.id
    return jsonify({"success": True, "user": user.to_summary()})


@app.route("/api/auth/logout", methods=["POST"])
def logout():
    session.pop("user_id", None)
    g.user = None
    return jsonify({"success": True})


@app.route("/api/health", methods=["GET"])
def health():
    database_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logging.error("Health check database error: %s", e)
        database_status = "error"
    return jsonify({"status": "ok", "database": database_status})


# Error handlers
# ------------------------------
@app.errorhandler(HTTPException)
def handle_http_exception(error):
    return json_error(error.description or error.name, status=error.code or 500)


@app.errorhandler(TokenDecryptionError)
def handle_token_decryption_error(error):
    db.session.rollback()
    return json_error(
        "Stored credentials could not be decrypted. Check the server encryption key.",
        status=500,
    )


@app.errorhandler(Exception)
def handle_unexpected_error(error):
    db.session.rollback()
    logging.error("Unhandled error on %s: %s", request.path, error, exc_info=True)
    return json_error("Internal server error", status=500)


# Application Execution
# ------------------------------
if __name__ == "__main__":
    app.run(debug=True)

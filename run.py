"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

Seed BAC roster and division master data:

    flask --app run.py seed-defaults

Database migrations (Flask-Migrate):

    flask --app run.py db upgrade

Production: point a WSGI server at `run:app`.

"""

from canvassing import create_app

# WSGI application object. `flask run` looks for this `app` variable to start the application.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only) - use `flask run` or a WSGI server instead.
    app.run(debug=True)

"""JSON API blueprints (auth, purchase requests, canvass sessions)."""

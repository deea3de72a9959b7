"""Application entry point for the farm store web UI."""

from farmstore.webapp import create_app

app = create_app()


if __name__ == "__main__":
    app.run(debug=True)

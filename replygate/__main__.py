"""
Entry point for running replygate as a module: python -m replygate
"""

from replygate.cli.commands import app

if __name__ == "__main__":
    app()

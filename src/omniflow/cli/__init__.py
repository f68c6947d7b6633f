"""
Command-line entrypoint.

- bootstrap.py: composition root (settings -> AppState)
- commands.py: slash-command registry for the ops console
- console.py: interactive ops console
- main.py: `omniflow` console script
"""

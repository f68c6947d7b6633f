"""
Core wiring.

- ports.py: Protocols for collaborators (completion client, collection store, clock, email)
- clock.py: wall clock and timestamp helpers
- templating.py: {{field}} substitution and dotted lookups
- state.py: AppState composition container
"""

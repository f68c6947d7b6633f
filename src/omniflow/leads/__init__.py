"""
Leads package.

Components:
- lead_models.py: Lead, Interaction, sequences, scheduled emails
- scoring.py: initial score, tags, interaction increments
- sequences.py: built-in nurturing sequences
- lead_store.py: lead and scheduled-email collections
- email.py: outbox and SMTP senders
- nurturing.py: LeadNurturingEngine (the state machine)
"""

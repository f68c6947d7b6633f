"""
Workflow subsystem.

Components:
- workflow_models.py: Workflow/Step records, typed step configs, run results
- workflow_store.py: authoring + persistence + run bookkeeping
- step_handlers.py: dispatch table of step-type handlers
- engine.py: best-effort ordered execution
- templates.py: starter workflows and schedule recommendations
"""

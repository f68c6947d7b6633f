# src/omniflow/workflows/templates.py

from __future__ import annotations

from typing import Any

from ..errors import NotFoundError
from .workflow_models import Workflow
from .workflow_store import WorkflowStore

# Starter workflows for common business needs.
WORKFLOW_TEMPLATES: dict[str, dict[str, Any]] = {
    "lead-processing": {
        "name": "Lead Processing Automation",
        "description": "Automatically process and qualify new leads",
        "steps": [
            {
                "type": "ai-process",
                "description": "Analyze lead information and score",
                "config": {"prompt": "Score this lead from 0 to 100 and explain briefly.", "taskType": "insights"},
            },
            {
                "type": "condition",
                "description": "Check if lead score > threshold",
                "config": {"field": "score", "operator": "gte", "value": 80},
            },
            {
                "type": "email-send",
                "description": "Send personalized follow-up email",
                "config": {"subject": "Next steps for {{businessName}}", "body": "Hi {{contactName}},"},
            },
        ],
    },
    "content-creation": {
        "name": "Content Creation Pipeline",
        "description": "Generate and schedule content across platforms",
        "steps": [
            {
                "type": "ai-process",
                "description": "Generate blog post content",
                "config": {"taskType": "generate-copy"},
            },
            {
                "type": "ai-process",
                "description": "Create social media snippets",
                "config": {"prompt": "Turn the previous result into three short social media posts."},
            },
            {"type": "webhook-call", "description": "Schedule posts on platforms", "config": {}},
        ],
    },
    "customer-onboarding": {
        "name": "Customer Onboarding Sequence",
        "description": "Automated welcome and setup process for new customers",
        "steps": [
            {
                "type": "email-send",
                "description": "Send welcome email with setup guide",
                "config": {"subject": "Welcome to OmniFlow, {{contactName}}", "body": "Your setup guide is ready."},
            },
            {
                "type": "ai-process",
                "description": "Generate personalized checklist",
                "config": {"prompt": "Write an onboarding checklist for {{businessName}}."},
            },
            {"type": "webhook-call", "description": "Create customer dashboard", "config": {}},
        ],
    },
    "data-insights": {
        "name": "Business Intelligence Reports",
        "description": "Automated data analysis and reporting",
        "steps": [
            {"type": "data-transform", "description": "Aggregate business metrics", "config": {}},
            {
                "type": "ai-process",
                "description": "Generate insights and recommendations",
                "config": {"taskType": "insights"},
            },
            {
                "type": "email-send",
                "description": "Send weekly report to stakeholders",
                "config": {"subject": "Weekly business insights"},
            },
        ],
    },
}

# Suggested cron expressions for common business rhythms.
SCHEDULE_RECOMMENDATIONS: dict[str, str] = {
    "daily-reports": "0 9 * * 1-5",
    "weekly-summary": "0 17 * * 5",
    "monthly-analysis": "0 9 1 * *",
    "lead-follow-up": "0 10,14 * * 1-5",
    "social-posting": "0 8,12,17 * * *",
}


def create_from_template(
    store: WorkflowStore,
    template_id: str,
    *,
    trigger: str = "manual",
    schedule: str | None = None,
    created_by: str = "system",
    name: str | None = None,
) -> Workflow:
    template = WORKFLOW_TEMPLATES.get(template_id)
    if template is None:
        raise NotFoundError(f"Unknown workflow template: {template_id}")
    return store.create_workflow(
        name or template["name"],
        trigger,
        template["steps"],
        schedule=schedule,
        created_by=created_by,
    )

# src/omniflow/leads/sequences.py

"""Built-in nurturing sequences."""

from __future__ import annotations

from textwrap import dedent

from .lead_models import EmailTemplate, NurturingSequence, NurturingStage


def _body(text: str) -> str:
    return dedent(text).strip() + "\n"


AUDIT_WELCOME = NurturingSequence(
    id="audit_welcome",
    name="Free Audit Welcome Series",
    description="Nurture leads who signed up for free business audit",
    trigger_conditions=("source:free_audit", "status:new"),
    emails=(
        EmailTemplate(
            id="audit_welcome_1",
            name="Welcome & Next Steps",
            subject="Your Free Business Audit is Starting - What to Expect",
            content=_body(
                """
                Hi {{contactName}},

                Thank you for requesting your free business automation audit for {{businessName}}!

                Over the next 5-7 days, our AI will analyze your business processes and identify
                automation opportunities for your team.

                Here's what happens next:
                1. Our system analyzes your business profile
                2. We identify top automation opportunities
                3. You receive a detailed report with ROI projections
                4. Optional: Schedule a consultation to discuss implementation

                In the meantime, here are 3 quick wins most {{companySize}} businesses can implement immediately:
                - Automate lead qualification
                - Set up intelligent email responses
                - Implement workflow triggers

                Questions? Simply reply to this email.

                Best regards,
                The OmniFlow Team
                """
            ),
            stage=NurturingStage.AWARENESS,
            trigger_delay=0,
        ),
        EmailTemplate(
            id="audit_value_2",
            name="Case Study - Similar Business Success",
            subject="How a {{companySize}} business saved with automation",
            content=_body(
                """
                Hi {{contactName}},

                Your audit is in progress! While we analyze {{businessName}}, thought you'd find this case study interesting.

                A {{companySize}} business similar to yours recently implemented our automation recommendations.
                They started with the business audit, then implemented the top 3 recommendations first.

                Your audit will be ready soon with specific recommendations for {{businessName}}.

                Best,
                OmniFlow Team
                """
            ),
            stage=NurturingStage.CONSIDERATION,
            trigger_delay=48,
        ),
        EmailTemplate(
            id="audit_ready_3",
            name="Your Audit Results Are Ready",
            subject="Your automation opportunities are ready to review",
            content=_body(
                """
                Hi {{contactName}},

                Your free business automation audit for {{businessName}} is complete!

                Your personalized report includes:
                - Top 5 automation opportunities ranked by ROI
                - Implementation roadmap with timelines
                - Cost-benefit analysis for each recommendation
                - Quick wins you can implement this week

                Want to discuss your results? Book a free 30-minute consultation.

                Best,
                The OmniFlow Team
                """
            ),
            stage=NurturingStage.DECISION,
            trigger_delay=120,
        ),
    ),
)

CONSULTATION_FOLLOWUP = NurturingSequence(
    id="consultation_followup",
    name="Consultation Follow-up Series",
    description="Follow up with leads who requested consultation",
    trigger_conditions=("source:consultation_request",),
    emails=(
        EmailTemplate(
            id="consultation_confirmation",
            name="Consultation Confirmation",
            subject="Your OmniFlow consultation is confirmed",
            content=_body(
                """
                Hi {{contactName}},

                Thank you for requesting a consultation for {{businessName}}!

                We'll contact you within 24 hours to schedule your personalized strategy session.

                To make our call as valuable as possible, please consider:
                - Your biggest operational challenge right now
                - What tasks your team spends the most time on
                - Your growth goals for the next 12 months

                Best,
                The OmniFlow Advisory Team
                """
            ),
            stage=NurturingStage.CONSIDERATION,
            trigger_delay=0,
        ),
    ),
)

PLATFORM_TRIAL = NurturingSequence(
    id="platform_trial",
    name="Platform Trial Onboarding",
    description="Onboard users who started platform trial",
    trigger_conditions=("source:platform_trial",),
    emails=(
        EmailTemplate(
            id="trial_welcome",
            name="Welcome to Your Trial",
            subject="Your 30-day trial is active - Quick start guide",
            content=_body(
                """
                Hi {{contactName}},

                Welcome to your 30-day trial! You now have access to the full automation platform.

                Quick start checklist:
                - Complete your business profile (5 minutes)
                - Try the AI business assistant
                - Explore automation blueprints for {{companySize}} businesses
                - Set up your first automated workflow

                Need help? Our support team is standing by.

                Best,
                The OmniFlow Team
                """
            ),
            stage=NurturingStage.CONSIDERATION,
            trigger_delay=0,
        ),
        EmailTemplate(
            id="trial_midpoint",
            name="Halfway Through Your Trial",
            subject="How is your automation going? (15 days left)",
            content=_body(
                """
                Hi {{contactName}},

                You're halfway through your trial! How is the automation journey going for {{businessName}}?

                If you haven't started yet, here are 3 quick wins you can set up today:
                1. Automate your lead capture form responses
                2. Set up task reminders for your team
                3. Create an automated welcome sequence

                Questions? Book a free setup call with our automation experts.

                Best,
                The OmniFlow Team
                """
            ),
            stage=NurturingStage.DECISION,
            trigger_delay=360,
        ),
    ),
)

DEFAULT_SEQUENCES: tuple[NurturingSequence, ...] = (AUDIT_WELCOME, CONSULTATION_FOLLOWUP, PLATFORM_TRIAL)

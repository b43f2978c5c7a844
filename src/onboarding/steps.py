"""
Tour Step Content.

Static, ordered table of guided-tour steps. Position in TOUR_STEPS is the
step's index in the tour. Anchored steps point at a `data-tutorial` marker the
host page renders exactly once while the step's route is active; the intro
and outro steps have no anchor and render centred.
"""

from dataclasses import dataclass

TUTORIAL_MARKER = "data-tutorial"


def anchor_for(marker: str) -> str:
    """Selector for the element carrying `data-tutorial="<marker>"`."""
    return f'[{TUTORIAL_MARKER}="{marker}"]'


@dataclass(frozen=True)
class TourStep:
    """One step of the guided tour."""
    id: str
    title: str
    body: str
    anchor: str | None = None

    @property
    def is_anchored(self) -> bool:
        return bool(self.anchor)


TOUR_STEPS: tuple[TourStep, ...] = (
    TourStep(
        id="welcome",
        title="Welcome to VisaMate!",
        body=(
            "Your comprehensive companion for visa application success. We help you "
            "track your progress, organize documents, and generate professional SOPs "
            "and cover letters with AI assistance."
        ),
    ),
    TourStep(
        id="dashboard",
        title="Your Dashboard",
        body=(
            "Get a complete overview of your visa application progress, pending "
            "documents, and recent activities all in one place."
        ),
        anchor=anchor_for("dashboard"),
    ),
    TourStep(
        id="visa-progress",
        title="Track Your Visa Progress",
        body=(
            "Monitor each step of your visa application journey, from IELTS "
            "submission to medical checkups. Never miss an important milestone!"
        ),
        anchor=anchor_for("visa-progress"),
    ),
    TourStep(
        id="documents",
        title="Document Management",
        body=(
            "Upload, organize, and track all your visa-related documents in one "
            "secure place. Get reminders for missing documents."
        ),
        anchor=anchor_for("documents"),
    ),
    TourStep(
        id="visa-consultant",
        title="AI Visa Consultant",
        body=(
            "Get personalized visa guidance and answers to your questions from our "
            "AI consultant. Available 24/7 to help with your queries."
        ),
        anchor=anchor_for("visa-consultant"),
    ),
    TourStep(
        id="sop",
        title="AI-Powered SOP Generation",
        body=(
            "Create compelling Statements of Purpose and cover letters using our "
            "advanced AI. Tailored to your profile and target universities."
        ),
        anchor=anchor_for("sop"),
    ),
    TourStep(
        id="resume",
        title="Resume Builder",
        body=(
            "Build and optimize your resume for visa applications and university "
            "admissions with our guided resume builder."
        ),
        anchor=anchor_for("resume"),
    ),
    TourStep(
        id="profile",
        title="Your Profile",
        body=(
            "Manage your personal information and preferences. Keep your profile "
            "updated for better AI recommendations."
        ),
        anchor=anchor_for("profile"),
    ),
    TourStep(
        id="complete",
        title="You're All Set!",
        body=(
            "You're ready to begin your visa application journey with VisaMate. "
            "Remember, we're here to help you every step of the way!"
        ),
    ),
)


def validate_steps(steps: tuple[TourStep, ...] | list[TourStep]) -> None:
    """Raise ValueError for an empty table or duplicate step ids."""
    if not steps:
        raise ValueError("Tour needs at least one step")
    seen: set[str] = set()
    for step in steps:
        if step.id in seen:
            raise ValueError(f"Duplicate tour step id: {step.id}")
        seen.add(step.id)

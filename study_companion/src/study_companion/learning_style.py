"""
Learning Styles

The fixed set of pedagogical styles a session can run in, plus the
four-question style-discovery quiz used to suggest one.
"""

from enum import Enum
from typing import Dict, List, Optional


class LearningStyle(Enum):
    """Pedagogical mode shaping both generation requests and UI framing."""
    VISUAL = "Visual"
    FEYNMAN = "Feynman"
    CORNELL_NOTES = "Cornell Notes"
    SQ3R = "SQ3R Method"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["LearningStyle"]:
        """
        Match a free-form provider answer against the known styles.

        Accepts display values ("Cornell Notes") and member names
        ("CORNELL_NOTES"), ignoring case, quotes and trailing punctuation.

        Returns:
            The matching LearningStyle, or None if nothing matches
        """
        if not raw:
            return None

        cleaned = raw.strip().strip("\"'`*").rstrip(".!").strip().lower()
        for style in cls:
            if cleaned in (style.value.lower(), style.name.lower()):
                return style
        return None


# Used when the classifier answers with something that is not a style
DEFAULT_LEARNING_STYLE = LearningStyle.FEYNMAN

STYLE_DESCRIPTIONS: Dict[LearningStyle, str] = {
    LearningStyle.VISUAL: "I learn best with mind maps, diagrams, and visual aids.",
    LearningStyle.FEYNMAN: "I prefer breaking down complex topics into simple explanations.",
    LearningStyle.CORNELL_NOTES: "I like to organize information with structured notes.",
    LearningStyle.SQ3R: "I use a system: Survey, Question, Read, Recite, Review.",
}

STYLE_QUIZ_QUESTIONS: List[Dict[str, object]] = [
    {
        "question": "When faced with a new, complex topic, what is your first instinct?",
        "options": [
            "To find a video or diagram that explains it.",
            "To try and explain it to someone else in simple terms.",
            "To start taking structured notes with questions in the margins.",
            "To skim through the material to get a general overview first.",
        ],
    },
    {
        "question": "How do you prefer to study for a test?",
        "options": [
            "Drawing charts and creating color-coded notes.",
            "Talking through the concepts out loud as if teaching a class.",
            "Reviewing my organized notes and summarizing the summaries.",
            "Answering pre-made questions and reviewing sections I get wrong.",
        ],
    },
    {
        "question": "What's most helpful when you get 'stuck' on an idea?",
        "options": [
            "Seeing a real-world example or a visual metaphor.",
            "Finding a very simple analogy to relate it to something I know.",
            "Writing down specific questions I have about it.",
            "Going back to the beginning and re-reading the material methodically.",
        ],
    },
    {
        "question": "When you assemble furniture, what is your approach?",
        "options": [
            "I rely heavily on the diagrams and pictures in the manual.",
            "I read the steps and then try to explain them to myself before I do them.",
            "I lay out all the pieces and make notes on the instructions.",
            "I quickly scan all the instructions first to understand the whole process.",
        ],
    },
]

STYLE_QUIZ_LENGTH = len(STYLE_QUIZ_QUESTIONS)

"""
System prompt construction.

Composes the tutor persona, response-style clauses, subject formatting
guidance and the closing policy into one deterministic system prompt.
"""

import re
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class ResponseConfig:
    """Response style switches for a conversation.

    Flag clauses are emitted in field order, so identical configs always
    produce identical prompts.
    """
    use_simple_language: bool = False
    include_definition: bool = False
    include_examples: bool = False
    include_steps: bool = False
    include_analogy: bool = False
    encourage_thinking: bool = False
    custom_prompt: Optional[str] = None
    response_format: Optional[str] = None  # e.g. "json_object"


@dataclass(frozen=True)
class UserContext:
    """What is known about the asking student."""
    user_id: Optional[int] = None
    grade: Optional[int] = None
    level: Optional[int] = None

    @property
    def effective_grade(self) -> Optional[int]:
        """Explicit grade, else one derived from the learning level (3 levels per grade)."""
        if self.grade:
            return self.grade
        if self.level:
            return (self.level - 1) // 3 + 1
        return None


FLAG_CLAUSES = (
    ("use_simple_language", "Use simple, easy-to-understand language appropriate for children. "),
    ("include_definition", "Always explain key definitions clearly. "),
    ("include_examples", "Provide concrete examples to illustrate concepts. "),
    ("include_steps", "Break down solutions into clear, step-by-step instructions. "),
    ("include_analogy", "Use analogies and comparisons to help students understand. "),
    ("encourage_thinking",
     "Encourage students to think through problems themselves before providing the answer. "),
)

DEFAULT_GUIDANCE = (
    "Use simple language, provide clear explanations with examples, "
    "break down solutions into steps, and encourage thinking. "
)

MATH_PATTERN = re.compile(
    r"toán|math|phép cộng|phép trừ|phép nhân|phép chia|phương trình|hình học|đại số"
    r"|giải hệ|tích phân|đạo hàm|logarit|logarithm"
)
PHYSICS_PATTERN = re.compile(
    r"vật lý|vật li|physics|lực|vận tốc|gia tốc|điện trường|từ trường|cơ học|quang học|nhiệt học"
)
CHEMISTRY_PATTERN = re.compile(
    r"hóa học|hoa hoc|chemistry|phương trình hóa học|cân bằng phương trình|oxi hoá|khử"
    r"|axit|bazơ|muối|hợp chất"
)

SCIENCE_GUIDANCE = (
    "\n\nThe student is asking about Math/Physics/Chemistry. When writing formulas or "
    "expressions, you must:\n"
    "- Always use Unicode mathematical and scientific symbols when possible "
    "(for example: √16 = 4, √2, x², x³, ½, ¾, H₂O, CO₂).\n"
    "- Clearly format each important formula on its own separate line so it is easy to read "
    "(for example:\n"
    "  ⭐ Ví dụ: √25 = 5\n"
    "  ⭐ Ví dụ: x² + y² = z²\n"
    "  ⭐ Ví dụ: v = s / t\n"
    ").\n"
    "- Always provide 1–2 short example expressions using these notations, and when "
    "appropriate also show the LaTeX form in parentheses, for example: "
    "⭐ Ví dụ: √25 = 5 (\\(\\sqrt{25} = 5\\)), "
    "⭐ Ví dụ: x² + y² = z² (\\(x^2 + y^2 = z^2\\)).\n"
)

CHEMISTRY_GUIDANCE = (
    "- For chemistry, always write full chemical equations using correct subscripts and "
    "arrows in Unicode, each equation on its own line, and when appropriate also show the "
    "LaTeX form in parentheses, for example:\n"
    "  2H₂ + O₂ → 2H₂O (\\(2H_2 + O_2 \\rightarrow 2H_2O\\))\n"
    "  CaCO₃ → CaO + CO₂ (\\(CaCO_3 \\rightarrow CaO + CO_2\\)).\n"
)

CLOSING_POLICY = (
    "\n\nWhen answering questions:\n"
    "- Always respond in Vietnamese (Tiếng Việt)\n"
    "- Be encouraging and supportive\n"
    "- Explain concepts clearly\n"
    "- Help students understand the reasoning behind solutions\n"
    "- Use age-appropriate language\n"
    "- Be patient and thorough"
)


def detect_subjects(question: str) -> List[str]:
    """Return the science subjects a question touches, in fixed order."""
    text = question.lower()
    subjects = []
    if MATH_PATTERN.search(text):
        subjects.append("math")
    if PHYSICS_PATTERN.search(text):
        subjects.append("physics")
    if CHEMISTRY_PATTERN.search(text):
        subjects.append("chemistry")
    return subjects


def build_persona(user_context: Optional[UserContext] = None) -> str:
    grade = user_context.effective_grade if user_context else None
    audience = f"grade {grade}" if grade else "elementary"
    return (
        f"You are a friendly and patient teacher for {audience} students. "
        "Always respond in Vietnamese (Tiếng Việt). "
    )


def build_system_prompt(
    question: str,
    user_context: Optional[UserContext] = None,
    config: Optional[ResponseConfig] = None,
    base_prompt: Optional[str] = None,
) -> str:
    """Compose the system prompt for an answer.

    Args:
        question: The student's question, used for subject detection
        user_context: Grade/level of the student, if known
        config: Response style switches; None applies the default guidance
        base_prompt: Extra instructions from the host conversation config

    Returns:
        The full system prompt
    """
    prompt = build_persona(user_context)
    if base_prompt:
        prompt += base_prompt.strip() + " "

    if config is not None:
        for field_name, clause in FLAG_CLAUSES:
            if getattr(config, field_name):
                prompt += clause
        if config.custom_prompt:
            prompt += f"\n\nAdditional instructions: {config.custom_prompt}"
    else:
        prompt += DEFAULT_GUIDANCE

    subjects = detect_subjects(question)
    if subjects:
        prompt += SCIENCE_GUIDANCE
        if "chemistry" in subjects:
            prompt += CHEMISTRY_GUIDANCE

    return prompt + CLOSING_POLICY


ANALYSIS_SYSTEM_PROMPT = (
    "You are an educational assessment expert. Analyze conversations and provide structured "
    "JSON responses. Always respond in Vietnamese (Tiếng Việt). All text fields in JSON must "
    "be in Vietnamese."
)

CHECK_ANSWER_SYSTEM_PROMPT = (
    "You are a patient and encouraging teacher. Provide constructive feedback. Always respond "
    "in Vietnamese (Tiếng Việt). All text fields in JSON (feedback, errors, suggestions) must "
    "be in Vietnamese."
)

CLARIFY_SYSTEM_PROMPT = (
    "You are a very patient Vietnamese tutor. When the student does not understand, you "
    "explain again more simply, step by step, and you give a similar practice problem. "
    "Always answer in Vietnamese (Tiếng Việt)."
)


def build_analysis_prompt(
    question: str,
    answer: str,
    user_context: Optional[UserContext] = None,
) -> str:
    """User message asking for a structured assessment of one question/answer pair."""
    grade = user_context.effective_grade if user_context else None
    return (
        "Analyze the following educational conversation and provide a JSON response with "
        "the following structure:\n"
        "{\n"
        '  "detectedGrade": number (1-9, the grade level detected from the question),\n'
        '  "detectedSubject": string (e.g., "math", "physics", "chemistry", "literature"),\n'
        '  "knowledgeLevel": string ("beginner", "intermediate", "advanced", "expert"),\n'
        '  "confidenceScore": number (0-100),\n'
        '  "detectedTopics": string (comma-separated list of topics covered in this question),\n'
        '  "learningGaps": string (areas where the student needs improvement),\n'
        '  "strengths": string (areas where the student shows strength),\n'
        '  "recommendations": string (suggestions for further learning),\n'
        '  "recommendedTopics": string (comma-separated list of related topics the student '
        "should learn next)\n"
        "}\n\n"
        f"Question: {question}\n"
        f"Answer provided: {answer}\n"
        f"User grade: {grade or 'unknown'}\n\n"
        "Important: Provide 3-5 recommended topics that are:\n"
        "- Related to the current question's topic\n"
        "- Appropriate for the student's grade level\n"
        "- Build upon or expand from the detectedTopics\n"
        "- Help the student progress in their learning journey\n\n"
        "Respond ONLY with valid JSON, no additional text."
    )


def build_check_answer_prompt(question: str, correct_answer: Optional[str] = None) -> str:
    expected = f"Expected answer: {correct_answer}\n" if correct_answer else ""
    return (
        "You are a teacher checking a student's answer.\n"
        f"Question: {question}\n"
        f"{expected}\n"
        "Analyze the image of the student's answer and provide a JSON response:\n"
        "{\n"
        '  "isCorrect": boolean,\n'
        '  "feedback": string (detailed feedback on the answer),\n'
        '  "errors": string[] (list of specific errors found, if any),\n'
        '  "suggestions": string (suggestions for improvement, if needed)\n'
        "}\n\n"
        "Respond ONLY with valid JSON, no additional text."
    )


def build_clarify_prompt(question: str, previous_answer: str) -> str:
    return (
        "The student says they still do not fully understand the previous explanation.\n\n"
        "You must:\n"
        "- Explain the concept again in an even simpler and clearer way, step by step.\n"
        "- Use friendly and encouraging Vietnamese (Tiếng Việt).\n"
        "- Highlight 1–2 key formulas or ideas on separate lines so they are easy to see.\n"
        "- Then give exactly ONE new practice problem that is similar in difficulty and topic "
        "to the original question, and guide the student on how to start solving it (but do "
        "NOT give the full final answer immediately).\n\n"
        f"Original question (from the student):\n{question}\n\n"
        f"Previous explanation (from you):\n{previous_answer}\n\n"
        "Now write the new explanation and the similar practice problem in Vietnamese."
    )

"""
Prompt templates for lesson generation and tutoring interaction.
"""

from typing import Any, Dict, List, Optional


TEACHING_PROGRESS_RUBRIC = {
    0: "Start with basic concepts - one at a time 🌱",
    25: "Add simple examples and details 🌿",
    50: "Show quick, practical applications 🌳",
    75: "Connect concepts with short examples 🌺",
    100: "Quick celebration and next steps! 🌟",
}

MAX_RESPONSE_CHARS = 2000


def progress_bucket(progress: int) -> int:
    """Largest rubric key not above `progress`."""
    return max(key for key in TEACHING_PROGRESS_RUBRIC if key <= max(0, progress))


def build_lesson_plan_prompt(user_request: str) -> str:
    """Build prompt for the lesson plan (topic, title, description, outline)"""

    return f"""You are an expert curriculum designer and educator. Plan a lesson that answers the learner's request.

LEARNER REQUEST:
{user_request}

REQUIREMENTS:
1. Title: comprehensive and educational
2. Description: brief but informative
3. Outline: between 3 and 7 sections
4. Cover all important aspects of the learner's request
5. Logical progression from basics to advanced
6. Every section carries a sequence number (1, 2, 3, ...) giving its order

OUTPUT FORMAT (JSON - no markdown formatting):
{{
  "topic": "React Hooks Fundamentals",
  "title": "Understanding React Hooks: A Comprehensive Guide",
  "description": "A deep dive into React Hooks, covering their purpose, common use cases, and best practices for modern React development.",
  "outline": [
    {{"sequenceNumber": 1, "title": "Introduction to React Hooks"}},
    {{"sequenceNumber": 2, "title": "Understanding useState"}},
    {{"sequenceNumber": 3, "title": "Effect Hook Deep Dive"}}
  ]
}}

Important: Return ONLY the JSON object, no markdown code blocks or additional text."""


def build_section_content_prompt(user_request: str, topic: str, section_title: str) -> str:
    """Build prompt for one section's content and narration time"""

    return f"""You are an expert educator writing one section of a lesson.

CONTEXT:
- Learner Request: {user_request}
- Lesson Topic: {topic}
- Section Title: {section_title}

CONTENT REQUIREMENTS:
1. Educational and clear, written in markdown
2. Include explanations, examples and practical applications
3. Focus on direct answers to the learner's goals

TIME ESTIMATION:
Estimate how many seconds it takes to teach this section, accounting for
base reading time, concept explanation, working through examples and
interactive discussion.

OUTPUT FORMAT (JSON - no markdown formatting outside the content string):
{{
  "content": "Section content with markdown formatting",
  "estimatedSeconds": 240
}}

Important: Return ONLY the JSON object."""


def _format_chat_history(turns: List[Dict[str, Any]]) -> str:
    if not turns:
        return "(no previous messages)"
    lines = []
    for turn in turns:
        speaker = "Student" if turn.get("type") == "user" else "Tutor"
        lines.append(f"{speaker}: {turn.get('message', '')}")
    return "\n".join(lines)


def build_interaction_prompt(
    student_name: str,
    language: str,
    accessibility_needs: List[str],
    lesson: Dict[str, Any],
    section: Dict[str, Any],
    next_section: Optional[Dict[str, Any]],
    chat_history: List[Dict[str, Any]],
    user_question: str,
    completion_requested: bool,
) -> str:
    """Build prompt for one tutoring turn on a content section"""

    current_progress = section.get("currentProgress") or 0
    bucket = progress_bucket(current_progress)
    rubric = "\n".join(
        f"- {key}%: {text}{'  <- CURRENT STAGE' if key == bucket else ''}"
        for key, text in TEACHING_PROGRESS_RUBRIC.items()
    )
    needs = ", ".join(accessibility_needs) if accessibility_needs else "none"

    completion_section = ""
    if completion_requested:
        if next_section:
            completion_section = f"""
COMPLETION CHECK (the student signals they are done with this section):
Give a brief review of key points, celebrate their understanding, and give a
short preview of the next topic!
- Next Section: {next_section.get('title', '')}
- About It: {next_section.get('description', '')}
If they have truly understood the section, report completion 100.
"""
        else:
            completion_section = """
COMPLETION CHECK (the student signals they are done with this section):
This is the last section of the lesson. Give a quick review of the main
concepts learned and celebrate completing the lesson! Keep it short and
encouraging. If they have truly understood the section, report completion 100.
"""

    transition = (
        "Give a quick preview of the next exciting topic!"
        if next_section else
        "Short celebration of completing the lesson!"
    )

    return f"""You are a friendly and enthusiastic educational AI tutor with a PhD: warm, encouraging
and relatable, like a supportive friend who happens to be an expert.

STUDENT:
- Name: {student_name}
- Language: {language} (respond in this language, with proper accents and tone markers)
- Accessibility Needs: {needs}

LESSON:
- Title: {lesson.get('title', '')}
- Description: {lesson.get('description', '')}

CURRENT SECTION (#{section.get('sequenceNumber')}{', last section' if not next_section else ''}):
- Title: {section.get('title', '')}
- Current Progress: {current_progress}%
- Content:
{section.get('content', '')}

RECENT CONVERSATION:
{_format_chat_history(chat_history)}

STUDENT'S MESSAGE:
{user_question}

TEACHING STYLE:
- Teach one small concept at a time with a clear example
- Short, easy-to-follow sentences; friendly language and emojis where natural
- New concept: brief friendly introduction and basic explanation
- In progress: build on previous knowledge in small additions
- Reinforcement: connect concepts using short examples
- Mastery: challenge with quick, practical applications

TEACHING PROGRESS:
{rubric}
After the section: {transition}
{completion_section}
RESPONSE CONSTRAINTS:
- Start with a brief greeting, teach one small concept, give a quick example, check understanding
- Keep the whole response under {MAX_RESPONSE_CHARS} characters

OUTPUT FORMAT (JSON - no markdown formatting):
{{
  "aiResponse": "Your reply to the student in short, clear sentences (max {MAX_RESPONSE_CHARS} chars)",
  "completion": 25
}}

"completion" is the student's progress through this section as a number from 0 to 100.
Important: Return ONLY the JSON object."""


def build_first_message(student_name: str, lesson_title: str) -> str:
    """Opening message sent on the learner's behalf for a section with no chat yet"""
    return (
        f"Hi, I'm {student_name} and I want to learn about {lesson_title}. "
        f"Can you teach me this concept like you're my PhD professor? I'm excited to learn! 😊"
    )

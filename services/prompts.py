"""
Prompt builders for planning-question and PRD generation
"""
from typing import Iterable, Optional

from models.project import ProjectDetails
from models.question import QuestionAnswer

# (attribute, label) in the order they appear in the project context
CONTEXT_FIELDS = [
    ("name", "Project Name"),
    ("description", "Project Description"),
    ("main_problem", "Main Problem"),
    ("min_feature_set", "Minimum Feature Set"),
    ("out_of_scope", "Out of Scope"),
    ("success_criteria", "Success Criteria"),
]

PRD_SECTIONS = ["Decisions", "Recommendations", "PRD Planning Summary", "Unresolved Issues"]
PRD_SECTION_HINTS = {
    "Decisions": "[List the decisions made by the user, numbered].",
    "Recommendations": "[List the most relevant recommendations matched to the conversation, numbered]",
    "PRD Planning Summary": "[Provide a detailed summary of the conversation, including the elements listed in step 3].",
    "Unresolved Issues": "[List any unresolved issues or areas needing further clarification, if any]",
}


def build_project_context(details) -> str:
    """
    One labelled line per present project field, in CONTEXT_FIELDS order.
    Empty or missing fields are left out entirely.
    """
    lines = []
    for attribute, label in CONTEXT_FIELDS:
        value = getattr(details, attribute, None)
        if value:
            lines.append(f"{label}: {value}")
    return "\n".join(lines)


def generate_questions_prompt(count: int) -> str:
    return f"""You are an experienced product manager tasked with helping to create a comprehensive Product Requirements Document (PRD) based on the provided information. Your goal is to generate a list of questions and recommendations that will be used in a follow-up prompt to create a complete PRD.

Analyze information provided by the user, focusing on aspects relevant to creating a PRD. Consider the following points:
<prd_analysis>
* Identify the main problem the product aims to solve.
* Define the key functionalities of the MVP.
* Consider potential user stories and usage paths.
* Think about success criteria and how they can be measured.
* Assess project constraints and their impact on product development.
</prd_analysis>

Based on your analysis, generate a list of questions and recommendations. These should address any ambiguities, potential issues, or areas where more information is needed to create an effective PRD. Consider questions regarding:

* Details of the user problem
* Prioritization of functionalities
* Expected user experience
* Measurable success indicators
* Potential risks and challenges
* Timeline and resources

Generate exactly {count} questions, no more and no less.
Format your response as a JSON array of strings. Example: ["Question 1", "Question 2"]
"""


def build_questions_user_message(
    details: ProjectDetails,
    count: int,
    previous_qa: Optional[Iterable[QuestionAnswer]] = None,
) -> str:
    """Project context plus, when available, the answered questions to build on."""
    message = f"<project_description>\n{build_project_context(details)}\n</project_description>\n"

    previous_qa = list(previous_qa or [])
    if previous_qa:
        message += "\nThe team has already answered the following questions:\n\n"
        answered = [qa for qa in previous_qa if qa.answer is not None]
        for index, qa in enumerate(answered, start=1):
            message += f"Question {index}: {qa.question}\nAnswer: {qa.answer}\n\n"
        message += (
            f"\nBased on these previous answers, generate {count} NEW questions that build upon "
            "this information and help the team think more deeply about their project.\n"
        )
        message += "Avoid asking questions that are too similar to the ones already answered.\n"

    return message


def generate_prd_prompt(project, questions) -> str:
    """
    Summarization prompt over the answered questions.
    Unanswered questions are not included.
    """
    answered = "\n".join(
        f"Question {q.sequence_number}: {q.question}\nAnswer: {q.answer}"
        for q in questions
        if q.answer is not None
    )
    sections = "\n\n".join(f"### {title}\n{PRD_SECTION_HINTS[title]}" for title in PRD_SECTIONS)

    return f"""<project_description>
{build_project_context(project)}
</project_description>

<answered_questions>
{answered}
</answered_questions>

---

You are an AI assistant tasked with summarizing a conversation about planning a PRD (Product Requirements Document) for an MVP and preparing a concise summary for the next stage of development. In the conversation history, you will find the following information:
1. Project description
2. Identified user problem
3. Conversation history containing questions and answers
4. Recommendations regarding PRD content

Your tasks are:
1. Summarize the conversation history, focusing on all decisions related to PRD planning.
2. Match the model's recommendations with the responses given in the conversation history. Identify which recommendations are relevant based on the discussion.
3. Prepare a detailed conversation summary that includes:
   a. Main functional requirements of the product
   b. Key user stories and usage paths
   c. Important success criteria and how to measure them
   d. Any unresolved issues or areas requiring further clarification
4. Format the output as follows:

{sections}

The final output should only contain content in markdown format, returned as a single JSON string. Make sure your summary is clear, concise, and provides valuable insights for the next stage of PRD creation.
"""


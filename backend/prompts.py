import json

INTERVIEW_QUESTION_COUNT = 5
QUIZ_QUESTION_COUNT = 10


def interview_questions_prompt(topic: str, level: str, existing_questions: list[str]) -> str:
    avoid = ", ".join(existing_questions) if existing_questions else "none"
    return f"""You are an expert technical interviewer. Generate {INTERVIEW_QUESTION_COUNT} unique interview questions for a {level} {topic} position.
Provide a simple one-sentence follow-up question for each.
Do not repeat any of these previous questions: {avoid}.

Return ONLY a JSON object in this exact format:
{{
  "questions": [
    {{
      "question": "string",
      "followUp": "string"
    }}
  ]
}}"""


def render_transcript(transcript: list[dict]) -> str:
    return "\n".join(
        f"{m.get('role', '')}: {m.get('message', '')}" for m in transcript
    )


def interview_feedback_prompt(transcript_text: str) -> str:
    return f"""You are an expert interview coach. Analyze the following interview transcript.
Provide constructive feedback and a score (from 1 to 10) for each question answered by the user.
Also provide an overall summary and a final score from 1-10.
The user's answers are from the 'user' role.

Return ONLY a JSON object in this exact format:
{{
  "totalScore": 10,
  "finalAssessment": "string",
  "individualFeedback": [
    {{
      "question": "string",
      "answer": "string",
      "feedback": "string",
      "score": 10
    }}
  ]
}}

Transcript:
{transcript_text}"""


def quiz_prompt(industry: str, skills: list[str]) -> str:
    expertise = f" with expertise in {', '.join(skills)}" if skills else ""
    return f"""Generate {QUIZ_QUESTION_COUNT} technical interview questions for a {industry} professional{expertise}.

Each question should be multiple choice with 4 options.

Return the response in this JSON format only, no additional text:
{{
  "questions": [
    {{
      "question": "string",
      "options": ["string", "string", "string", "string"],
      "correctAnswer": "string",
      "explanation": "string"
    }}
  ]
}}"""


def improvement_tip_prompt(industry: str, wrong_answers: list[dict]) -> str:
    wrong_text = "\n\n".join(
        f"Question: {json.dumps(q.get('question'))}\n"
        f"Correct Answer: {json.dumps(q.get('answer'))}\n"
        f"User Answer: {json.dumps(q.get('userAnswer'))}"
        for q in wrong_answers
    )
    return f"""The user got the following {industry} technical interview questions wrong:

{wrong_text}

Based on these mistakes, provide a concise, specific improvement tip.
Focus on the knowledge gaps revealed by these wrong answers.
Keep the response under 2 sentences and make it encouraging.
Don't explicitly mention the mistakes, instead focus on what to learn/practice."""


VOICE_INTERVIEWER_PROMPT = """You are an expert technical interviewer named 'Alex'. Your goal is to conduct a professional and helpful mock interview.
The user's interview topic and a list of questions are provided in the 'variables'.
1. Start by introducing yourself ("Hi, I'm Alex") and stating the interview topic.
2. Ask the questions from the 'questions' variable one by one. Each item has a "question" and a "followUp".
3. After the user answers a question, DO NOT give feedback.
4. Simply acknowledge their answer ("Got it, thank you.", "Okay, thanks for sharing.") and then ask the corresponding 'followUp' question.
5. After they answer the follow-up, acknowledge it and move to the next main question.
6. Be friendly, professional, and conversational.
7. After you have asked ALL questions, say "That's all the questions I have. Thank you for your time. Your feedback report will be generated now. Have a great day!" and then end the call."""

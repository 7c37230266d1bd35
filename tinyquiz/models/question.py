"""
Canonical question shape every AI provider is normalized into.
"""
from typing import List
from pydantic import BaseModel, Field

OPTION_COUNT = 4

class Question(BaseModel):
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    correct_answer: int = Field(ge=0, le=OPTION_COUNT - 1)
    explanation: str = Field(min_length=1)

    def public_view(self) -> dict:
        """Question as shown to respondents: no answer, no explanation."""
        return {"question": self.question, "options": list(self.options)}

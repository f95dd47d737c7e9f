import os
import sys
import tempfile
from collections import Counter
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

from storage.migrate import migrate
from config.settings import settings
from config.registry import (
    EVALUATION_KEY,
    NARRATIVE_KEY,
    NEXT_QUESTION_KEY,
    OPENING_KEY,
    bind_model,
    unbind_all,
)

QUESTIONS = [
    ("まず、簡単に自己紹介をお願いします。", "self-introduction"),
    ("転職を考えた理由を教えてください。", "motivation"),
    ("当社を志望する理由は何ですか。", "motivation"),
    ("これまでで最も苦労したプロジェクトについて教えてください。", "experience"),
    ("チームで意見が対立した時、どう対応しましたか。", "teamwork"),
    ("5年後にどのようなエンジニアになっていたいですか。", "vision"),
    ("あなたの強みを教えてください。", "strengths"),
    ("最後に何か質問はありますか。", "closing"),
]


class FakeAI:
    """Registry-bound stand-in for the AI turn service."""

    def __init__(self):
        self.calls = Counter()
        self.planned = len(QUESTIONS)
        self.follow_up = False
        self.score = 80
        self.detail = {"relevance": 80, "specificity": 80, "logic": 80, "enthusiasm": 80}
        self.fail = set()
        self.on_opening = None
        self.on_next = None
        self.on_narrative = None

    def _check(self, name):
        self.calls[name] += 1
        if name in self.fail:
            raise ValueError(f"{name} is down")

    def _hook(self, attr):
        hook = getattr(self, attr)
        if hook is not None:
            setattr(self, attr, None)
            hook()

    def opening(self, *, prompt, schema):
        self._check("opening")
        self._hook("on_opening")
        return {
            "interviewerProfile": {"name": "佐藤", "role": "人事部マネージャー"},
            "openingMessage": "本日はよろしくお願いします。リラックスしてお話しください。",
            "questions": [
                {"id": i + 1, "question": text, "category": category, "intent": "", "followUpHints": []}
                for i, (text, category) in enumerate(QUESTIONS[: self.planned])
            ],
        }

    def next_question(self, *, prompt, schema):
        self._check("next_question")
        self._hook("on_next")
        if self.follow_up:
            return {
                "useFollowUp": True,
                "question": "そのプロジェクトで具体的に何を担当しましたか。",
                "transition": "なるほど、ありがとうございます。",
            }
        return {"useFollowUp": False, "question": "", "transition": "ありがとうございます。"}

    def evaluate(self, *, prompt, schema):
        self._check("evaluate")
        return {
            "score": self.score,
            "goodPoints": ["具体的なエピソードがある", "結論から話せている"],
            "improvementPoints": ["数字で成果を示すとよい"],
            "shortFeedback": "具体的で分かりやすい回答でした。",
            "detailScores": dict(self.detail),
        }

    def narrative(self, *, prompt, schema):
        self._check("narrative")
        self._hook("on_narrative")
        return {
            "strengths": ["論理的な説明"],
            "improvements": ["成果の定量化"],
            "overallFeedback": "全体として落ち着いた受け答えでした。",
            "nextSteps": ["実績を数字で語る練習をしましょう。"],
        }

    def bind(self):
        bind_model(OPENING_KEY, self.opening)
        bind_model(NEXT_QUESTION_KEY, self.next_question)
        bind_model(EVALUATION_KEY, self.evaluate)
        bind_model(NARRATIVE_KEY, self.narrative)
        return self


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        unbind_all()
        td.cleanup()


@pytest.fixture
def fake_ai():
    return FakeAI().bind()


@pytest.fixture
def interview_settings():
    from interview_session.models import InterviewSettings

    return InterviewSettings(industry="IT・通信", position="エンジニア", interview_type="first", question_count=5)

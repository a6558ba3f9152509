"""Step-by-step follow-up questionnaire.

The visit starts by asking whether the respondent attended training.  A
"no" skips every training-dependent question and goes straight to general
feedback; a "yes" walks the full list.  The step list is recomputed from
the attendance answer on each access, so the cursor only keeps an index
and the answers collected so far.  That pair is what gets stored in the
Django session between requests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import OperationFailed
from .text import normalize, split_tags


class QuestionnaireError(OperationFailed):
    """Raised when an answer does not fit the current step."""


class StepKind(str, enum.Enum):
    CHOICE = 'choice'  # single select, advances on answer
    MULTI = 'multi'  # checkbox list, needs "next"
    TEXT = 'text'  # free text, needs "next"


class Transition(str, enum.Enum):
    STAYED = 'stayed'
    MOVED = 'moved'
    SUBMIT = 'submit'


Option = Tuple[Any, str]


@dataclass(frozen=True)
class Step:
    key: str
    prompt: str
    kind: StepKind
    options: Tuple[Option, ...] = ()
    required: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'prompt': self.prompt,
            'kind': self.kind.value,
            'options': [{'value': value, 'label': label} for value, label in self.options],
            'required': self.required,
        }


YES_NO: Tuple[Option, ...] = ((True, 'Yes'), (False, 'No'))

FREQUENCY_OPTIONS: Tuple[Option, ...] = (
    (1, 'Never'),
    (2, 'Occasionally'),
    (3, 'Monthly'),
    (4, 'Weekly'),
    (5, 'Daily'),
)

GROUP_PROGRESS_OPTIONS: Tuple[Option, ...] = (
    (1, 'Very poor'),
    (2, 'Poor'),
    (3, 'Some progress'),
    (4, 'Good progress'),
    (5, 'Huge progress'),
)

MENTOR_OPTIONS: Tuple[Option, ...] = (
    (1, 'Very poor'),
    (2, 'Poor'),
    (3, 'Fair'),
    (4, 'Good'),
    (5, 'Excellent'),
)

INCOME_OPTIONS: Tuple[Option, ...] = (
    (-1, 'I’m in debt'),
    (0, 'UGX 0 (no change)'),
    (1, 'UGX 50k–100k'),
    (2, 'UGX 110k–250k'),
    (3, 'UGX 260k–350k'),
    (4, 'UGX 360k–500k'),
    (5, 'UGX 510k+'),
)

EARNINGS_OPTIONS: Tuple[Option, ...] = (
    (-1, 'Operated at a loss / group debt'),
    (0, 'UGX 0 (no earnings)'),
    (1, 'UGX 1–350k'),
    (2, 'UGX 360k–700k'),
    (3, 'UGX 710k–1,500k'),
    (4, 'UGX 1,510k–3,000k'),
    (5, 'UGX 3,010k+'),
)

NEW_MARKETS_OPTIONS: Tuple[Option, ...] = (
    (0, 'None'),
    (1, 'One new market'),
    (2, 'Two to three'),
    (3, 'Four or more'),
)

QUALITY_STEPS_OPTIONS: Tuple[Option, ...] = (
    (0, 'None'),
    (1, 'One step'),
    (2, 'Two to three'),
    (3, 'Four or more'),
)


def _tags(*labels: str) -> Tuple[Option, ...]:
    return tuple((label, label) for label in labels)


PRACTICE_OPTIONS = _tags(
    'Record keeping',
    'Pruning',
    'Mulching',
    'Soil and water conservation',
    'Pest and disease control',
    'Selective picking',
    'Post-harvest handling',
    'Collective marketing',
    'Savings',
    'Other',
)

RESULT_OPTIONS = _tags(
    'Higher yields',
    'Better quality',
    'Better prices',
    'Reduced costs',
    'More savings',
    'Stronger group',
    'No change yet',
    'Other',
)

LOW_INTEREST_OPTIONS = _tags(
    'Record keeping',
    'Group governance',
    'Savings and loans',
    'Marketing',
    'Value addition',
    'None',
    'Other',
)

SUPPORT_GAP_OPTIONS = _tags(
    'Inputs',
    'Finance',
    'Market access',
    'Equipment',
    'Extension visits',
    'Training materials',
    'Other',
)

CHALLENGE_OPTIONS = _tags(
    'Low prices',
    'Pests and diseases',
    'Weather',
    'Lack of finance',
    'Poor roads',
    'Middlemen',
    'Group conflicts',
    'Other',
)

INTEREST_OPTIONS = _tags(
    'Value addition',
    'Financial literacy',
    'Marketing',
    'Climate-smart agriculture',
    'Leadership',
    'Digital tools',
    'Other',
)

GOVERNANCE_OPTIONS = _tags(
    'Held elections',
    'Written constitution',
    'Regular meetings',
    'Kept minutes',
    'Opened bank account',
    'Registered the group',
    'None',
)

MENTOR_ASPECTS = (
    ('mentor_knowledge', 'How knowledgeable was your mentor?'),
    ('mentor_communication', 'How clearly did your mentor communicate?'),
    ('mentor_punctuality', 'How punctual was your mentor?'),
    ('mentor_engagement', 'How engaged was your mentor with the group?'),
    ('mentor_practicality', 'How practical was the mentor’s advice?'),
    ('mentor_overall', 'Overall, how would you rate your mentor?'),
)

ATTENDANCE_STEP = Step(
    'attended_training',
    'Did you attend the training sessions?',
    StepKind.CHOICE,
    YES_NO,
    required=True,
)

GENERAL_FEEDBACK_STEP = Step(
    'general_feedback',
    'Any other feedback about the programme?',
    StepKind.TEXT,
)

_TRAINING_STEPS: Tuple[Step, ...] = (
    Step('practices_applied', 'Which practices from the training have you applied?', StepKind.MULTI, PRACTICE_OPTIONS),
    Step('practice_frequency', 'How often do you apply these practices?', StepKind.CHOICE, FREQUENCY_OPTIONS),
    Step('practice_results', 'What results have you seen?', StepKind.MULTI, RESULT_OPTIONS),
    Step('group_progress', 'How would you rate your group’s progress?', StepKind.CHOICE, GROUP_PROGRESS_OPTIONS),
    Step('income_change', 'How has your personal income changed per season?', StepKind.CHOICE, INCOME_OPTIONS),
    Step('group_earnings', 'What did your group earn this season?', StepKind.CHOICE, EARNINGS_OPTIONS),
    Step('low_interest_areas', 'Which topics interested you least?', StepKind.MULTI, LOW_INTEREST_OPTIONS),
    Step('support_gaps', 'Where do you still need support?', StepKind.MULTI, SUPPORT_GAP_OPTIONS),
) + tuple(
    Step(key, prompt, StepKind.CHOICE, MENTOR_OPTIONS) for key, prompt in MENTOR_ASPECTS
) + (
    Step('do_better', 'What could the mentor do better?', StepKind.TEXT),
    Step('example_use', 'Give an example of how you used what you learned.', StepKind.TEXT),
    Step('current_challenges', 'What challenges are you facing now?', StepKind.MULTI, CHALLENGE_OPTIONS),
    Step('future_interests', 'What would you like to learn next?', StepKind.MULTI, INTEREST_OPTIONS),
)

_CLOSING_STEPS: Tuple[Step, ...] = (
    Step('governance_steps', 'Which governance steps has your group taken?', StepKind.MULTI, GOVERNANCE_OPTIONS),
    Step('new_markets', 'How many new markets has your group reached?', StepKind.CHOICE, NEW_MARKETS_OPTIONS),
    Step('quality_steps', 'How many quality improvement steps has your group taken?', StepKind.CHOICE, QUALITY_STEPS_OPTIONS),
)


def build_steps(attended: bool) -> Tuple[Step, ...]:
    """Return the ordered steps for a visit.

    Respondents who did not attend training only see the attendance
    question and general feedback.
    """

    if not attended:
        return (ATTENDANCE_STEP, GENERAL_FEEDBACK_STEP)
    return (ATTENDANCE_STEP,) + _TRAINING_STEPS + (GENERAL_FEEDBACK_STEP,) + _CLOSING_STEPS


ALL_STEPS = build_steps(True)
RECORD_FIELDS: Tuple[str, ...] = tuple(step.key for step in ALL_STEPS)


def _coerce_choice(step: Step, value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        raise QuestionnaireError(f'Choose an answer for "{step.prompt}".')
    wanted = normalize(str(value))
    for option_value, label in step.options:
        if isinstance(option_value, bool):
            if wanted in {normalize(str(option_value)), normalize(label)}:
                return option_value
            if option_value and wanted in {'1', 'y', 'on'}:
                return option_value
            if not option_value and wanted in {'0', 'n', 'off'}:
                return option_value
        elif wanted in {normalize(str(option_value)), normalize(label)}:
            return option_value
    raise QuestionnaireError(f'"{value}" is not a valid answer for "{step.prompt}".')


def _coerce_multi(step: Step, value: Any) -> List[str]:
    allowed = {normalize(option_value): option_value for option_value, _label in step.options}
    selected: List[str] = []
    for tag in split_tags(value):
        canonical = allowed.get(normalize(tag))
        if canonical is None:
            raise QuestionnaireError(f'"{tag}" is not a valid answer for "{step.prompt}".')
        if canonical not in selected:
            selected.append(canonical)
    return selected


def _coerce_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ''
    return str(value).strip() if value is not None else ''


@dataclass
class QuestionnaireSession:
    """Cursor over the follow-up steps.

    ``index`` points into :func:`build_steps` for the current attendance
    answer; ``answers`` maps step keys to validated values.  A missing
    attendance answer shows the full list.
    """

    index: int = 0
    answers: Dict[str, Any] = field(default_factory=dict)

    @property
    def attended(self) -> bool:
        return self.answers.get('attended_training') is not False

    @property
    def steps(self) -> Tuple[Step, ...]:
        return build_steps(self.attended)

    @property
    def current(self) -> Step:
        return self.steps[self.index]

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index >= len(self.steps) - 1

    def answer(self, value: Any) -> Transition:
        """Record ``value`` for the current step.

        Single-select steps move on immediately (or ask for submission
        on the last step); the others wait for :meth:`advance`.
        """

        step = self.current
        if step.kind is StepKind.CHOICE:
            self.answers[step.key] = _coerce_choice(step, value)
            self._clamp()
            return self.advance()
        if step.kind is StepKind.MULTI:
            self.answers[step.key] = _coerce_multi(step, value)
        else:
            self.answers[step.key] = _coerce_text(value)
        return Transition.STAYED

    def advance(self) -> Transition:
        step = self.current
        if step.required and self.answers.get(step.key) is None:
            raise QuestionnaireError(f'Answer "{step.prompt}" before continuing.')
        if self.is_last:
            return Transition.SUBMIT
        self.index += 1
        return Transition.MOVED

    def back(self) -> Transition:
        if self.is_first:
            return Transition.STAYED
        self.index -= 1
        return Transition.MOVED

    def to_record(self) -> Dict[str, Any]:
        """Return every follow-up answer column; skipped ones are ``None``."""

        on_path = {step.key for step in self.steps}
        record: Dict[str, Any] = {}
        for key in RECORD_FIELDS:
            value = self.answers.get(key) if key in on_path else None
            if value in ('', []):
                value = None
            record[key] = value
        return record

    def describe(self) -> Dict[str, Any]:
        step = self.current
        return {
            'step': step.as_dict(),
            'answer': self.answers.get(step.key),
            'index': self.index,
            'total': len(self.steps),
            'path': step_keys(self.steps),
            'can_go_back': not self.is_first,
            'is_last': self.is_last,
        }

    def to_state(self) -> Dict[str, Any]:
        return {'index': self.index, 'answers': dict(self.answers)}

    @classmethod
    def from_state(cls, state: Optional[Dict[str, Any]]) -> 'QuestionnaireSession':
        if not state:
            return cls()
        session = cls(index=int(state.get('index') or 0), answers=dict(state.get('answers') or {}))
        session._clamp()
        return session

    def _clamp(self) -> None:
        self.index = min(max(self.index, 0), len(self.steps) - 1)


def step_keys(steps: Sequence[Step]) -> List[str]:
    return [step.key for step in steps]

"""
Reflection Scoring Service

Turns a free-text reflection into an EmotionalAnalysis:
    - emotional_depth   0.0 - 1.0
    - self_awareness    0.0 - 1.0
    - themes            ordered set of theme labels, first occurrence first

Pure and deterministic: same text in, bit-identical analysis out. No I/O,
no randomness, no clock. Length validation belongs to the caller.

Depth is a sum of capped contributions, each non-decreasing in its own count:

    word count            min(words / 200, 0.25)
    sentence count        min(sentences / 8, 0.05)
    self references       min(refs / 15, 0.15)
    emotional vocabulary  min(hits / 12, 0.25)
    reasoning connectives min(hits / 5, 0.10)
    contrast words        min(hits / 5, 0.10)
    growth vocabulary     min(hits / 5, 0.10)
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Pattern, Tuple

import logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EmotionalAnalysis:
    """Scores derived from one reflection. Immutable."""
    emotional_depth: float
    self_awareness: float
    themes: Tuple[str, ...] = ()

    @property
    def dominant_theme(self):
        return self.themes[0] if self.themes else None


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

# Theme label -> word-initial patterns. Order here breaks ties between themes
# that match at the same position.
THEME_PATTERNS: Dict[str, List[str]] = {
    "calm": [r"calm\w*", r"peace\w*", r"tranquil\w*", r"seren\w*", r"relax\w*"],
    "connect": [r"connect\w*", r"bond\w*", r"belong\w*", r"relationship\w*", r"together"],
    "energy": [r"energ\w*", r"vital\w*", r"alive", r"vibrant"],
    "aware": [r"aware\w*", r"mindful\w*", r"conscious\w*", r"notic\w*", r"presence"],
    "love": [r"love\w*", r"loving", r"compassion\w*", r"kind\w*", r"heart\w*"],
    "gratitude": [r"grateful\w*", r"gratitude", r"thank\w*", r"appreciat\w*", r"bless\w*"],
    "joy": [r"joy\w*", r"happy", r"happier", r"happiness", r"delight\w*", r"bliss\w*"],
    "power": [r"power\w*", r"strength\w*", r"strong\w*", r"confiden\w*", r"courage\w*"],
    "creativity": [r"creat\w*", r"imagin\w*", r"inspir\w*", r"play\w*"],
    "expression": [r"express\w*", r"speak\w*", r"voice\w*", r"truth\w*", r"honest\w*"],
    "wisdom": [r"wisdom", r"wise", r"insight\w*", r"intuit\w*", r"clarity", r"understand\w*"],
    "spirit": [r"spirit\w*", r"divine", r"universe", r"sacred", r"transcend\w*"],
    "grounded": [r"ground\w*", r"stable", r"stability", r"safe\w*", r"secure\w*", r"rooted"],
    "healing": [r"heal\w*", r"releas\w*", r"transform\w*", r"forgiv\w*", r"letting go"],
    "fear": [r"fear\w*", r"worr\w*", r"anxi\w*", r"stress\w*", r"afraid"],
    "sadness": [r"sad\w*", r"grief", r"griev\w*", r"lonel\w*", r"melanchol\w*"],
    "anger": [r"anger", r"angry", r"frustrat\w*", r"irritat\w*", r"rage"],
}

EMOTIONAL_TERMS = [
    "feel", "felt", "feeling", "emotion", "heart", "deeply", "profound",
    "moved", "touching", "powerful", "experience", "sense",
    "understand", "realized", "discovered", "awareness",
    "energy", "centered", "peaceful", "grateful", "authentic",
]

COMPLEXITY_TERMS = [
    "because", "however", "although", "therefore",
    "consequently", "despite", "nevertheless", "furthermore",
    "additionally", "moreover", "since",
]

CONTRAST_TERMS = [
    "but", "yet", "while", "whereas", "unlike", "instead",
    "contrast", "difference", "similarity", "compared",
    "on one hand", "on the other hand", "balance", "harmony",
]

GROWTH_TERMS = [
    "insight", "growth", "evolve", "transform", "journey",
    "practice", "progress", "develop", "change", "shift",
    "conscious", "mindful", "presence", "connect",
    "integrate", "alignment",
]

# First-person reflective phrasing: the signal for self-awareness.
REFLECTIVE_PATTERNS = [
    r"\bi (?:feel|felt|notice|noticed|realize|realized|realise|realised|sense|sensed"
    r"|think|wonder|learned|understand|recognize|recognise|observe|observed)\b",
    r"\bi(?:'m| am) (?:noticing|feeling|learning|realizing|aware|becoming)\b",
    r"\b(?:noticing|realizing|reflecting|observing)\b",
    r"\bmy (?:body|mind|heart|breath|thoughts|feelings|emotions|reactions)\b",
]

_SELF_REFERENCE_RE = re.compile(r"\b(?:i|me|my|myself|mine)\b", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def _terms_re(terms: List[str]) -> Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(t) for t in terms) + r")\b", re.IGNORECASE)


_EMOTIONAL_RE = _terms_re(EMOTIONAL_TERMS)
_COMPLEXITY_RE = _terms_re(COMPLEXITY_TERMS)
_CONTRAST_RE = _terms_re(CONTRAST_TERMS)
_GROWTH_RE = _terms_re(GROWTH_TERMS)
_REFLECTIVE_RE = re.compile("|".join(REFLECTIVE_PATTERNS), re.IGNORECASE)
_THEME_RES: List[Tuple[str, Pattern]] = [
    (label, re.compile(r"\b(?:" + "|".join(patterns) + r")\b", re.IGNORECASE))
    for label, patterns in THEME_PATTERNS.items()
]


# ---------------------------------------------------------------------------
# Counting helpers
# ---------------------------------------------------------------------------

def count_words(text: str) -> int:
    return len(text.split())


def count_sentences(text: str) -> int:
    return sum(1 for s in _SENTENCE_SPLIT_RE.split(text) if s.strip())


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def extract_themes(text: str) -> Tuple[str, ...]:
    """Theme labels present in the text, ordered by where each first appears."""
    first_seen = []
    for order, (label, pattern) in enumerate(_THEME_RES):
        match = pattern.search(text)
        if match:
            first_seen.append((match.start(), order, label))
    first_seen.sort()
    return tuple(label for _, _, label in first_seen)


def evaluate_emotional_depth(text: str) -> float:
    depth = 0.0
    depth += min(count_words(text) / 200, 0.25)
    depth += min(count_sentences(text) / 8, 0.05)
    depth += min(len(_SELF_REFERENCE_RE.findall(text)) / 15, 0.15)
    depth += min(len(_EMOTIONAL_RE.findall(text)) / 12, 0.25)
    depth += min(len(_COMPLEXITY_RE.findall(text)) / 5, 0.1)
    depth += min(len(_CONTRAST_RE.findall(text)) / 5, 0.1)
    depth += min(len(_GROWTH_RE.findall(text)) / 5, 0.1)
    return round(_clamp(depth), 4)


def evaluate_self_awareness(text: str) -> float:
    """
    Reflective phrasing ("i notice", "i realized", "my breath") plus how much
    of the text is written in the first person.
    """
    words = count_words(text)
    if words == 0:
        return 0.0
    reflective = len(_REFLECTIVE_RE.findall(text))
    density = len(_SELF_REFERENCE_RE.findall(text)) / words
    score = min(reflective * 0.2, 0.6) + min(density * 2, 0.4)
    return round(_clamp(score), 4)


def analyze(text: str) -> EmotionalAnalysis:
    """Score a reflection. Accepts any string, including empty."""
    text = text or ""
    return EmotionalAnalysis(
        emotional_depth=evaluate_emotional_depth(text),
        self_awareness=evaluate_self_awareness(text),
        themes=extract_themes(text),
    )


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

DEPTH_BANDS = [
    (0.8, "Profound",
     "Your reflection shows exceptional emotional awareness and deep self-understanding."),
    (0.6, "Deep",
     "Your reflection demonstrates strong emotional insight and self-awareness."),
    (0.4, "Substantial",
     "Your reflection shows good emotional awareness and growing self-insight."),
    (0.2, "Developing",
     "Your reflection is developing emotional depth. Consider exploring your feelings more fully."),
]
BEGINNING_CATEGORY = "Beginning"
BEGINNING_FEEDBACK = (
    "This is a great start to your reflection practice. Try exploring your emotions more deeply."
)


def depth_category(score: float) -> str:
    for threshold, category, _ in DEPTH_BANDS:
        if score >= threshold:
            return category
    return BEGINNING_CATEGORY


def depth_feedback(score: float) -> str:
    for threshold, _, feedback in DEPTH_BANDS:
        if score >= threshold:
            return feedback
    return BEGINNING_FEEDBACK

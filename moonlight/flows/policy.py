"""Decision policy of the chat flow.

The policy runs before the model is called: it detects the language of the latest turn,
classifies its intent, selects which tools the model is offered and fixes the output shape.
The chat prompt is rendered from the resulting ``ChatDecision``.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum

SEARCH_TOOL_NAME = "internetSearch"
IMAGE_TOOL_NAME = "generateImageTool"

LANGUAGE_NAMES = {
    "ar": "Arabic",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "he": "Hebrew",
    "hi": "Hindi",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "pt": "Portuguese",
    "ru": "Russian",
    "th": "Thai",
    "uk": "Ukrainian",
    "zh": "Chinese",
}

_SCRIPT_LANGUAGES = {
    "GREEK": "el",
    "ARABIC": "ar",
    "HEBREW": "he",
    "HANGUL": "ko",
    "DEVANAGARI": "hi",
    "THAI": "th",
}

_LATIN_MARKERS = {
    "de": ("ä", "ö", "ü", "ß", " und ", " ist ", " nicht ", " ich ", " wie ", " was ", "hallo"),
    "fr": ("ç", "è", "ê", " le ", " les ", " est ", " une ", " des ", " je ", "bonjour", "merci", " pourquoi"),
    "es": ("ñ", "¿", "¡", " el ", " los ", " que ", " una ", " por ", " qué ", "hola", "gracias"),
    "it": (" il ", " gli ", " che ", " sono ", " della ", " perché", "ciao", "grazie"),
    "pt": ("ã", "õ", " não ", " uma ", " você", " obrigad", "olá", " como "),
    "en": (" the ", " is ", " and ", " what ", " how ", " you ", " of ", " please", "hello", "thanks"),
}

_GREETING_WORDS = (
    "hi",
    "hello",
    "hey",
    "hiya",
    "yo",
    "greetings",
    "good morning",
    "good afternoon",
    "good evening",
    "good night",
    "thanks",
    "thank you",
    "thx",
    "how are you",
    "how are you doing",
    "what's up",
    "whats up",
    "nice to meet you",
    "bye",
    "goodbye",
    "see you",
    "привет",
    "здравствуйте",
    "здравствуй",
    "добрый день",
    "доброе утро",
    "добрый вечер",
    "спасибо",
    "как дела",
    "пока",
    "привіт",
    "дякую",
    "hola",
    "buenos días",
    "buenas tardes",
    "gracias",
    "bonjour",
    "bonsoir",
    "salut",
    "merci",
    "hallo",
    "guten tag",
    "guten morgen",
    "danke",
    "ciao",
    "buongiorno",
    "grazie",
    "olá",
    "obrigado",
    "obrigada",
    "こんにちは",
    "你好",
    "안녕하세요",
)
_GREETING_RE = re.compile(
    r"^(?:(?:" + "|".join(re.escape(w) for w in _GREETING_WORDS) + r")\s*)+"
    r"(?:there|moonlight|friend|bot|everyone|all|again|so much|a lot)?$"
)

_IMAGE_REQUEST_PATTERNS = [
    r"\b(?:draw|paint|sketch|illustrate)\b",
    r"\b(?:generate|create|make|produce|render|design|show me)\b.{0,40}?"
    r"\b(?:image|picture|pic|photo|drawing|illustration|artwork|art|wallpaper|logo|icon|portrait|poster)s?\b",
    r"\b(?:image|picture|photo|drawing|illustration) of\b",
    r"нарису",
    r"(?:сгенерир|созда|сдела|покажи).{0,40}?(?:изображени|картин|фото|рисун|иллюстрац)",
    r"намалюй",
    r"\bdibuja",
    r"\b(?:genera|crea)\b.{0,40}?\b(?:imagen|foto|dibujo)",
    r"\bdessine",
    r"\b(?:génère|genere|crée|cree)\b.{0,40}?\b(?:image|photo|dessin)",
    r"\bzeichne",
    r"\b(?:erstelle|generiere)\b.{0,40}?\b(?:bild|foto)",
]
_IMAGE_REQUEST_RE = re.compile("|".join(_IMAGE_REQUEST_PATTERNS), re.IGNORECASE | re.DOTALL)

_JSON_REQUEST_RE = re.compile(r"\bjson\b", re.IGNORECASE)


class Intent(str, Enum):
    GREETING = "greeting"
    IMAGE_UPLOAD = "image_upload"
    IMAGE_REQUEST = "image_request"
    INFORMATION = "information"


@dataclass(frozen=True)
class ChatDecision:
    language: str
    intent: Intent
    tools: tuple[str, ...]
    require_image_tool: bool
    json_summary: bool
    allow_image_output: bool

    @property
    def language_name(self) -> str:
        return LANGUAGE_NAMES.get(self.language, self.language)


def detect_language(text: str, default: str = "en") -> str:
    """Guess an ISO 639-1 code from the script of ``text`` and, for Latin text, common words."""
    scripts: dict[str, int] = {}
    for char in text:
        if not char.isalpha():
            continue
        name = unicodedata.name(char, "")
        script = name.split(" ", 1)[0]
        if script == "CJK":
            script = "HAN"
        scripts[script] = scripts.get(script, 0) + 1

    if not scripts:
        return default

    script = max(scripts, key=scripts.get)
    if script in ("HIRAGANA", "KATAKANA") or (script == "HAN" and ("HIRAGANA" in scripts or "KATAKANA" in scripts)):
        return "ja"
    if script == "HAN":
        return "zh"
    if script == "CYRILLIC":
        return "uk" if re.search(r"[іїєґ]", text, re.IGNORECASE) else "ru"
    if script in _SCRIPT_LANGUAGES:
        return _SCRIPT_LANGUAGES[script]
    if script != "LATIN":
        return default

    padded = f" {text.lower()} "
    scores = {lang: sum(padded.count(marker) for marker in markers) for lang, markers in _LATIN_MARKERS.items()}
    best = max(scores, key=scores.get)
    return best if scores[best] > 0 else default


def _normalize(text: str) -> str:
    text = re.sub(r"[^\w\s']", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def is_greeting(text: str) -> bool:
    normalized = _normalize(text)
    return bool(normalized) and bool(_GREETING_RE.match(normalized))


def asks_for_image(text: str) -> bool:
    return bool(_IMAGE_REQUEST_RE.search(text))


def asks_for_json(text: str) -> bool:
    return bool(_JSON_REQUEST_RE.search(text))


def decide(text: str, has_uploaded_image: bool = False, history_text: str = "") -> ChatDecision:
    """Classify the latest turn and pick the tools and output shape for it."""
    language = detect_language(text) if text.strip() else detect_language(history_text)
    json_summary = asks_for_json(text)
    wants_image = asks_for_image(text)

    if has_uploaded_image:
        return ChatDecision(
            language=language,
            intent=Intent.IMAGE_UPLOAD,
            tools=(SEARCH_TOOL_NAME, IMAGE_TOOL_NAME) if wants_image else (SEARCH_TOOL_NAME,),
            require_image_tool=wants_image,
            json_summary=json_summary,
            allow_image_output=wants_image,
        )

    if is_greeting(text):
        return ChatDecision(
            language=language,
            intent=Intent.GREETING,
            tools=(),
            require_image_tool=False,
            json_summary=json_summary,
            allow_image_output=False,
        )

    return ChatDecision(
        language=language,
        intent=Intent.IMAGE_REQUEST if wants_image else Intent.INFORMATION,
        tools=(SEARCH_TOOL_NAME, IMAGE_TOOL_NAME),
        require_image_tool=wants_image,
        json_summary=json_summary,
        allow_image_output=True,
    )


def render_directives(decision: ChatDecision) -> str:
    lines = [
        "**Decision for the LATEST request:**",
        f"- Respond in {decision.language_name} (language code '{decision.language}') unless the "
        "request is clearly written in another language.",
    ]

    if decision.intent is Intent.GREETING:
        lines.append("- This is a greeting or pleasantry: reply conversationally, call no tools and omit \"imageUrl\".")
    elif decision.intent is Intent.IMAGE_UPLOAD:
        lines.append("- The user uploaded an image: your answer addresses that image and the accompanying text.")
        if decision.require_image_tool:
            lines.append(f"- The user explicitly asked for a new image: you MUST call '{IMAGE_TOOL_NAME}'.")
        else:
            lines.append("- Do not generate a new image and omit \"imageUrl\".")
    elif decision.intent is Intent.IMAGE_REQUEST:
        lines.append(
            f"- The user asked for a new image: you MUST call '{IMAGE_TOOL_NAME}' and the \"summary\" is a short "
            "caption of the image (plus the answer to any informational part)."
        )
    else:
        lines.append(
            f"- This is an information request: call '{SEARCH_TOOL_NAME}' if the answer needs external or "
            f"up-to-date information, and call '{IMAGE_TOOL_NAME}' only if an illustration would clearly help."
        )

    if decision.tools:
        lines.append(f"- Available tools: {', '.join(decision.tools)}.")
    else:
        lines.append("- No tools are available for this turn.")

    if decision.json_summary:
        lines.append(
            "- The user asked for JSON: the \"summary\" value MUST be a string containing valid JSON "
            '(for example {"summary": "{\\"topic\\": \\"cats\\"}"}).'
        )
    else:
        lines.append("- The \"summary\" value is plain prose, not JSON.")

    return "\n".join(lines)

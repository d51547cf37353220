"""Prompts and fixed fallbacks for mood detection and journaling prompts."""

MOOD_SYSTEM_PROMPT = """\
You read short personal journal entries and describe their emotional tone.

Reply with exactly one short, warm sentence addressed to the writer that \
names the mood you notice. Include one fitting emoji. Do not give advice, \
do not ask questions, do not quote the entry back."""

MOOD_FALLBACK = (
    "Thank you for sharing your thoughts today. 🌿 Your entry has been saved."
)

JOURNAL_PROMPT_SYSTEM_PROMPT = """\
You write journaling prompts. Reply with a single open, gentle question \
(one sentence, no preamble) that invites the writer to reflect."""

JOURNAL_PROMPT_TEMPLATE = """\
Today is {weekday}. Recent moods from previous entries: {moods}.

Write one journaling prompt for today."""

NO_PREVIOUS_MOODS = "no previous entries"

PROMPT_FALLBACK = "What's on your mind today?"


def render_journal_prompt_request(weekday: str, moods: list[str]) -> str:
    """Fill the journaling prompt request with the weekday and prior moods."""
    return JOURNAL_PROMPT_TEMPLATE.format(
        weekday=weekday,
        moods=", ".join(moods) if moods else NO_PREVIOUS_MOODS,
    )

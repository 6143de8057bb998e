from __future__ import annotations

CONTENT_CATEGORIES = ("educational", "entertainment", "tutorial", "lifestyle", "business", "other")
PLATFORM_LABELS = ("TikTok", "Instagram", "YouTube", "Unknown")

FULL_ANALYSIS_TEMPLATE = """You are analyzing a short-form social video{platform_clause}.

Watch and listen to the whole video, then return ONE JSON object and nothing else.
No markdown, no code fences, no commentary.

Return JSON with this exact shape:
{{
  "transcript": "Complete word-for-word transcript of everything spoken in the video",
  "components": {{
    "hook": "Attention-grabbing opener (first 3-5 seconds)",
    "bridge": "Transition connecting the hook to the core idea",
    "nugget": "The core lesson, insight or strategy (golden nugget)",
    "wta": "Call to action or concluding thought"
  }},
  "contentMetadata": {{
    "platform": "TikTok | Instagram | YouTube | Unknown",
    "author": "Creator name or handle if visible or mentioned, else Unknown",
    "description": "One or two sentence description of the content",
    "source": "educational | entertainment | tutorial | lifestyle | business | other",
    "hashtags": ["relevant", "hashtags", "without", "the", "hash"]
  }}
}}

Rules:
- transcript must be verbatim speech, not a summary. Use "" if nothing is spoken.
- Each component should quote or closely paraphrase the video.
- source MUST be one of: educational, entertainment, tutorial, lifestyle, business, other.
{context_block}"""

TRANSCRIBE_PROMPT = """Transcribe this video.

Return ONLY the complete word-for-word transcript of everything spoken, as plain text.
No timestamps, no speaker labels, no commentary. If nothing is spoken, return an empty response.
"""

SCRIPT_ANALYSIS_TEMPLATE = """Analyze this video transcript and break it down into these four essential script components:

1. HOOK (Attention-Grabbing Opener): the part that captures attention within the first 3-5 seconds.
   If it is not clear, write an optimized hook based on the content.
2. BRIDGE (Connecting the Hook to the Core Idea): the transition from the opening to the main content.
3. GOLDEN NUGGET (The Core Lesson or Strategy): the main valuable insight, tip or takeaway.
4. WTA (Call to Action / Concluding Thought): the ending that drives action or leaves a lasting impression.

Transcript to analyze:
\"\"\"{transcript}\"\"\"

Respond with ONLY a valid JSON object in this exact format (no additional text):
{{
  "hook": "...",
  "bridge": "...",
  "nugget": "...",
  "wta": "..."
}}
"""

METADATA_ANALYSIS_TEMPLATE = """Analyze this social video transcript and extract content metadata.
{context_block}
Transcript:
\"\"\"{transcript}\"\"\"

Respond with ONLY a valid JSON object in this exact format (no additional text):
{{
  "platform": "TikTok | Instagram | YouTube | Unknown",
  "author": "Creator name or handle, else Unknown",
  "description": "One or two sentence description of the content",
  "source": "educational | entertainment | tutorial | lifestyle | business | other",
  "hashtags": ["relevant", "hashtags"]
}}
"""


def build_context_block(
    platform_label: str | None = None,
    author: str | None = None,
    description: str | None = None,
    hashtags: list[str] | None = None,
) -> str:
    lines: list[str] = []
    if platform_label and platform_label != "Unknown":
        lines.append(f"- platform: {platform_label}")
    if author:
        lines.append(f"- author: {author}")
    if description:
        lines.append(f"- caption: {description[:500]}")
    if hashtags:
        lines.append(f"- hashtags: {', '.join(hashtags[:30])}")
    if not lines:
        return ""
    return "\nKnown facts from the platform (prefer these over guesses):\n" + "\n".join(lines) + "\n"


def build_full_analysis_prompt(platform_label: str | None = None, **context) -> str:
    platform_clause = f" from {platform_label}" if platform_label and platform_label != "Unknown" else ""
    return FULL_ANALYSIS_TEMPLATE.format(
        platform_clause=platform_clause,
        context_block=build_context_block(platform_label, **context),
    )


def build_script_prompt(transcript: str) -> str:
    return SCRIPT_ANALYSIS_TEMPLATE.format(transcript=transcript)


def build_metadata_prompt(transcript: str, platform_label: str | None = None, **context) -> str:
    return METADATA_ANALYSIS_TEMPLATE.format(
        transcript=transcript,
        context_block=build_context_block(platform_label, **context),
    )

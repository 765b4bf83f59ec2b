"""
Summary service: README text in, short summary and "cool facts" out.

OpenAI is used when configured; every failure there (timeout, connectivity,
unusable output) falls back to plain text extraction so callers always get
a result.
"""
import json
import logging
import re
import threading
from typing import List

from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError

from gitsum.core.config import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert technical writer. Always return valid JSON."

PROMPT_TEMPLATE = """Summarize the following README.md file for a GitHub repository for someone seeing it for the first time.

- Write a concise summary (3-5 sentences) describing what the project is, its main features, and its purpose.
- Extract a list of 3 to 7 "cool facts" or notable, interesting, or fun aspects about the project, with each fact as a self-contained string.

Your response must be a valid JSON object with two fields:
- "summary": the summary string.
- "cool_facts": a list of cool fact strings.

README.md content:
{readme_content}
"""

FALLBACK_FACTS = ["Open source project", "Available on GitHub", "Includes README documentation"]


class SummaryResult(BaseModel):
    """Structured summary of a README."""
    summary: str
    cool_facts: List[str] = Field(..., min_length=1)


def _split_sentences(paragraph: str, max_chunk_size: int) -> List[str]:
    chunks = []
    current = ""
    for sentence in re.split(r"(?<=[.!?])\s+", paragraph):
        if len(current) + len(sentence) + 1 <= max_chunk_size:
            current = f"{current} {sentence}" if current else sentence
        else:
            if current:
                chunks.append(current)
            current = sentence
    if current:
        chunks.append(current)
    return chunks


def chunk_text(text: str, max_chunk_size: int = 100_000) -> List[str]:
    """
    Split text into chunks of at most ``max_chunk_size`` characters.

    Splits on blank lines first and falls back to sentence boundaries for
    paragraphs that are too large on their own.
    """
    if len(text) <= max_chunk_size:
        return [text]

    chunks: List[str] = []
    current = ""
    for paragraph in re.split(r"\n\s*\n", text):
        if len(current) + len(paragraph) + 2 > max_chunk_size:
            if current:
                chunks.append(current)
            if len(paragraph) > max_chunk_size:
                pieces = _split_sentences(paragraph, max_chunk_size)
                chunks.extend(pieces[:-1])
                current = pieces[-1] if pieces else ""
            else:
                current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

    if current:
        chunks.append(current)
    return chunks or [text]


def summarize_with_extraction(readme_content: str) -> SummaryResult:
    """Build a summary from README structure alone, without any model."""
    title_match = re.search(r"^#\s+(.+)$", readme_content, re.MULTILINE)
    title = title_match.group(1).strip() if title_match else "Project"

    description_match = re.search(r"^#\s+.+\n\n([\s\S]+?)(?:\n\n|$)", readme_content)
    description = description_match.group(1).strip()[:300] if description_match else ""

    features_match = re.search(r"##\s+Features?\s*\n([\s\S]*?)(?=\n##|$)", readme_content, re.IGNORECASE)
    features = re.findall(r"[-*]\s+(.+)", features_match.group(1)) if features_match else []

    badges = re.findall(r"!\[.*?\]\(.*?\)", readme_content)
    links = re.findall(r"\[.*?\]\(.*?\)", readme_content)[:5]

    summary = title
    if description:
        summary += f": {description}"
    if features:
        summary += f" Key features include {', '.join(features[:3])}."

    facts = [f"Project name: {title}"]
    if features:
        facts.append(f"Has {len(features)} documented features")
    if badges:
        facts.append(f"Includes {len(badges)} status badges")
    if links:
        facts.append(f"Uses technologies: {', '.join(links[:3])}")
    line_count = len(readme_content.split("\n"))
    if line_count > 50:
        facts.append(f"Comprehensive documentation with {line_count} lines")
    if "install" in readme_content.lower():
        facts.append("Includes installation instructions")

    if len(facts) < 3:
        facts = (facts + FALLBACK_FACTS)[:7]

    return SummaryResult(summary=summary or "A GitHub project with documentation.", cool_facts=facts[:7])


def _parse_json_content(content: str) -> dict:
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        # Models sometimes wrap JSON in markdown fences
        json_start = content.find("{")
        json_end = content.rfind("}") + 1
        if json_start >= 0 and json_end > json_start:
            return json.loads(content[json_start:json_end])
        raise


class SummaryService:
    """Summarizes README content with OpenAI, falling back to extraction."""

    def __init__(self):
        self._client = None
        self._client_lock = threading.Lock()

    @property
    def client(self):
        """Lazy-load the OpenAI client once per process."""
        if self._client is None and settings.is_openai_available():
            with self._client_lock:
                if self._client is None:
                    try:
                        self._client = OpenAI(
                            api_key=settings.OPENAI_API_KEY,
                            timeout=settings.SUMMARY_TIMEOUT_SECONDS,
                            max_retries=settings.SUMMARY_MAX_RETRIES,
                        )
                    except Exception as e:
                        logger.error(f"Failed to initialize OpenAI client: {e}")
                        return None
        return self._client

    def is_available(self) -> bool:
        """Check if model-backed summaries are possible."""
        return (
            settings.LLM_PROVIDER.lower() == "openai"
            and settings.is_openai_available()
            and self.client is not None
        )

    def _prepare_input(self, readme_content: str) -> str:
        chunks = chunk_text(readme_content, settings.SUMMARY_MAX_INPUT_CHARS)
        if len(chunks) > 1:
            return chunks[0] + f"\n\n[... {len(chunks) - 1} more sections truncated for processing ...]"
        return readme_content

    def summarize_with_openai(self, readme_content: str) -> SummaryResult:
        """
        Summarize with the OpenAI chat API.

        Timeouts and retries are enforced by the client itself.

        Raises:
            Exception: Any client, network or parsing failure
        """
        prompt = PROMPT_TEMPLATE.format(readme_content=self._prepare_input(readme_content))
        response = self.client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0,
            max_tokens=1000,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content or ""
        return SummaryResult.model_validate(_parse_json_content(content))

    def summarize_readme(self, readme_content: str) -> SummaryResult:
        """Summarize README content, never failing for provider problems."""
        if not self.is_available():
            logger.debug("Model summaries unavailable, using extraction")
            return summarize_with_extraction(readme_content)

        try:
            return self.summarize_with_openai(readme_content)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Model returned an unusable summary, falling back to extraction: {e}")
        except Exception as e:
            logger.warning(f"Model summarization failed, falling back to extraction: {e}", exc_info=True)
        return summarize_with_extraction(readme_content)


summary_service = SummaryService()
